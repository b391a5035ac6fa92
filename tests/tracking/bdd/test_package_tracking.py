"""BDD tests for package status tracking."""

from protean import current_domain
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, scenarios, then, when
from tracking.package.intake import ReceivePackage
from tracking.package.package import Package
from tracking.package.status import UpdatePackageStatus

scenarios("features/package_tracking.feature")


@given("a package received at the warehouse", target_fixture="package_id")
def received_package():
    return current_domain.process(
        ReceivePackage(
            tracking_number="TN-BDD-1",
            first_name="Bdd",
            last_name="Customer",
            user_code="BDD01",
            weight=1.0,
            shipper="Amazon",
            description="Books",
            branch="Kingston",
        ),
        asynchronous=False,
    )


@when(parsers.cfparse("the package status is updated to {status:d}"))
def update_status(package_id, status, error):
    try:
        current_domain.process(UpdatePackageStatus(package_id=package_id, status=status), asynchronous=False)
    except ValidationError as exc:
        error["exc"] = exc


@then(parsers.cfparse("the package history has {count:d} entry"))
@then(parsers.cfparse("the package history has {count:d} entries"))
def history_length(package_id, count):
    assert len(current_domain.repository_for(Package).get(package_id).history) == count


@then(parsers.cfparse("the package status is {status:d}"))
def package_status(package_id, status):
    assert current_domain.repository_for(Package).get(package_id).status == status
