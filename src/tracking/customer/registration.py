"""Customer registration and profile changes — commands and handlers."""

from protean import handle
from protean.fields import Boolean, Identifier, String, Text
from protean.utils.globals import current_domain

from tracking.customer.customer import Customer
from tracking.domain import tracking


@tracking.command(part_of="Customer")
class RegisterCustomer:
    user_code: String(required=True, max_length=50)
    first_name: String(required=True, max_length=100)
    last_name: String(required=True, max_length=100)
    email: String(max_length=254)
    phone: String(max_length=30)
    branch: String(max_length=100)
    customer_service_type_id: String(max_length=100)
    customer_level_instructions: Text()
    courier_service_type_id: String(max_length=100)
    courier_level_instructions: Text()


@tracking.command(part_of="Customer")
class UpdateCustomer:
    customer_id: Identifier(required=True)
    first_name: String(max_length=100)
    last_name: String(max_length=100)
    email: String(max_length=254)
    phone: String(max_length=30)
    branch: String(max_length=100)
    customer_service_type_id: String(max_length=100)
    customer_level_instructions: Text()
    courier_service_type_id: String(max_length=100)
    courier_level_instructions: Text()
    is_active: Boolean()


@tracking.command_handler(part_of=Customer)
class CustomerRegistrationHandler:
    @handle(RegisterCustomer)
    def register_customer(self, command):
        customer = Customer.register(
            user_code=command.user_code,
            first_name=command.first_name,
            last_name=command.last_name,
            email=command.email,
            phone=command.phone,
            branch=command.branch,
            customer_service_type_id=command.customer_service_type_id,
            customer_level_instructions=command.customer_level_instructions,
            courier_service_type_id=command.courier_service_type_id,
            courier_level_instructions=command.courier_level_instructions,
        )
        current_domain.repository_for(Customer).add(customer)
        return str(customer.id)

    @handle(UpdateCustomer)
    def update_customer(self, command):
        repo = current_domain.repository_for(Customer)
        customer = repo.get(command.customer_id)
        customer.update(
            first_name=command.first_name,
            last_name=command.last_name,
            email=command.email,
            phone=command.phone,
            branch=command.branch,
            customer_service_type_id=command.customer_service_type_id,
            customer_level_instructions=command.customer_level_instructions,
            courier_service_type_id=command.courier_service_type_id,
            courier_level_instructions=command.courier_level_instructions,
            is_active=command.is_active,
        )
        repo.add(customer)
        return str(customer.id)
