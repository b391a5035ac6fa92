"""Package removal — command and handler."""

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from tracking.domain import tracking
from tracking.package.package import Package
from tracking.shared.origin import Origin


@tracking.command(part_of="Package")
class DeletePackage:
    package_id = Identifier(required=True)
    origin = String(max_length=20, default=Origin.WAREHOUSE)


def remove_package(package, origin: str = Origin.WAREHOUSE) -> None:
    """Raise PackageDeleted and delete the record.

    Raises InvalidOperationError for a delivered, claimed package; nothing is
    touched in that case.
    """
    repo = current_domain.repository_for(Package)
    package.remove(origin=origin)
    repo.add(package)
    repo._dao.delete(package)


@tracking.command_handler(part_of=Package)
class DeletePackageHandler:
    @handle(DeletePackage)
    def delete_package(self, command):
        package = current_domain.repository_for(Package).get(command.package_id)
        remove_package(package, origin=command.origin or Origin.WAREHOUSE)
        return str(package.id)
