"""Warehouse intake — command and handler."""

from protean import handle
from protean.fields import Float, Integer, String
from protean.utils.globals import current_domain

from tracking.customer.customer import find_customer, normalize_user_code
from tracking.domain import tracking
from tracking.package.package import Package, customer_attributes
from tracking.shared.numbers import generate_control_number, generate_tracking_number
from tracking.shared.origin import Origin


@tracking.command(part_of="Package")
class ReceivePackage:
    tracking_number = String(max_length=100)  # Generated when absent
    control_number = String(max_length=100)  # Generated when absent
    first_name = String(required=True, max_length=100)
    last_name = String(required=True, max_length=100)
    user_code = String(required=True, max_length=50)
    weight = Float(required=True, min_value=0.0)
    shipper = String(required=True, max_length=255)
    description = String(required=True, max_length=500)
    branch = String(required=True, max_length=100)
    entry_staff = String(max_length=100)
    courier_id = String(max_length=100)
    collection_id = String(max_length=100)
    original_house_number = String(max_length=100)
    service_type_id = String(max_length=100)
    hazmat_code_id = String(max_length=100)
    hs_code = String(max_length=50)
    pieces = Integer(default=1, min_value=0)
    length = Float(default=0.0)
    width = Float(default=0.0)
    height = Float(default=0.0)
    cubes = Float(default=0.0)


@tracking.command_handler(part_of=Package)
class ReceivePackageHandler:
    @handle(ReceivePackage)
    def receive_package(self, command):
        attributes = {
            "tracking_number": command.tracking_number or generate_tracking_number(),
            "control_number": command.control_number or generate_control_number(),
            "first_name": command.first_name,
            "last_name": command.last_name,
            "user_code": normalize_user_code(command.user_code),
            "weight": command.weight,
            "shipper": command.shipper,
            "description": command.description,
            "branch": command.branch,
            "entry_staff": command.entry_staff,
            "courier_id": command.courier_id,
            "collection_id": command.collection_id,
            "original_house_number": command.original_house_number,
            "service_type_id": command.service_type_id,
            "hazmat_code_id": command.hazmat_code_id,
            "hs_code": command.hs_code,
            "pieces": command.pieces,
            "dimensions": {
                "length": command.length or 0.0,
                "width": command.width or 0.0,
                "height": command.height or 0.0,
                "cubes": command.cubes or 0.0,
            },
        }
        attributes = {name: value for name, value in attributes.items() if value is not None}
        attributes.update(customer_attributes(find_customer(attributes["user_code"])))

        package = Package.receive(attributes, origin=Origin.WAREHOUSE, actor=command.entry_staff)
        current_domain.repository_for(Package).add(package)
        return str(package.id)
