"""Product creation — command and handler."""

from protean import handle
from protean.fields import Dict, String
from protean.utils.globals import current_domain

from catalogue.domain import catalogue
from catalogue.product.product import Product, ProductDetails
from shared.cancellation import raise_if_cancelled


@catalogue.command(part_of="Product")
class CreateProduct:
    owner_id: String(required=True, max_length=64, sanitize=False)
    # Raw client input, validated as a whole by ProductDetails.from_fields
    details: Dict()


@catalogue.command_handler(part_of=Product)
class CreateProductHandler:
    @handle(CreateProduct)
    def create_product(self, command):
        details = ProductDetails.from_fields(command.details or {})
        product = Product.create(owner_id=command.owner_id, details=details)

        raise_if_cancelled()
        current_domain.repository_for(Product).add(product)
        return product
