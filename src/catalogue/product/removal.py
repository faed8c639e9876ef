"""Product removal — command and handler."""

from protean import handle
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from catalogue.domain import catalogue
from catalogue.product.details import check_expected_version, get_active_product
from catalogue.product.product import Product
from shared.cancellation import raise_if_cancelled


@catalogue.command(part_of="Product")
class DeleteProduct:
    product_id: Identifier(required=True)
    owner_id: String(required=True, max_length=64, sanitize=False)
    expected_version: Integer()


@catalogue.command_handler(part_of=Product)
class DeleteProductHandler:
    @handle(DeleteProduct)
    def delete_product(self, command):
        product = get_active_product(command.product_id)
        product.ensure_owned_by(command.owner_id)
        check_expected_version(product, command.expected_version)

        product.delete(command.owner_id)

        raise_if_cancelled()
        current_domain.repository_for(Product).add(product)
        return product
