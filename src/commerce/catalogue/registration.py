"""Product registration — commands and handler."""

from protean import handle
from protean.fields import Boolean, Identifier, Integer, String
from protean.utils.globals import current_domain

from commerce.catalogue.product import Product
from commerce.domain import commerce


@commerce.command(part_of="Product")
class AddProduct:
    merchant_id = Identifier(required=True)
    name = String(required=True, max_length=255)
    base_price = Integer(required=True, min_value=0)
    is_active = Boolean(default=True)


@commerce.command(part_of="Product")
class ChangeProductPrice:
    product_id = Identifier(required=True)
    base_price = Integer(required=True, min_value=0)


@commerce.command(part_of="Product")
class DeactivateProduct:
    product_id = Identifier(required=True)


@commerce.command_handler(part_of=Product)
class ProductRegistrationHandler:
    @handle(AddProduct)
    def add_product(self, command):
        product = Product.create(
            merchant_id=command.merchant_id,
            name=command.name,
            base_price=command.base_price,
            is_active=command.is_active,
        )
        current_domain.repository_for(Product).add(product)
        return str(product.id)

    @handle(ChangeProductPrice)
    def change_price(self, command):
        repo = current_domain.repository_for(Product)
        product = repo.get(command.product_id)
        product.change_price(command.base_price)
        repo.add(product)

    @handle(DeactivateProduct)
    def deactivate_product(self, command):
        repo = current_domain.repository_for(Product)
        product = repo.get(command.product_id)
        product.deactivate()
        repo.add(product)
