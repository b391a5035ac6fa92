import pytest
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def tracking_bed():
    from tracking.domain import tracking

    bed = DomainFixture(tracking)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(tracking_bed):
    from tracking.delivery import reset_transport
    from tracking.realtime import reset_publisher

    reset_transport()
    reset_publisher()
    with tracking_bed.domain_context():
        yield
    reset_transport()
    reset_publisher()
