"""Product details management — command and handler."""

from protean import handle
from protean.fields import Dict, Identifier, Integer, String
from protean.utils.globals import current_domain

from catalogue.domain import catalogue
from catalogue.product.product import Product, ProductDetails
from shared.cancellation import raise_if_cancelled
from shared.exceptions import NotFoundError, VersionConflictError


@catalogue.command(part_of="Product")
class UpdateProduct:
    product_id: Identifier(required=True)
    owner_id: String(required=True, max_length=64, sanitize=False)
    details: Dict()
    expected_version: Integer()


def get_active_product(product_id: str) -> Product:
    """Load a product, treating a logically deleted one as missing."""
    product = current_domain.repository_for(Product).get(product_id)
    if not product.active:
        raise NotFoundError(f"Product {product_id} not found")
    return product


def check_expected_version(product: Product, expected_version: int | None) -> None:
    if expected_version is not None and product.version != expected_version:
        raise VersionConflictError(product.id, expected_version, product.version)


@catalogue.command_handler(part_of=Product)
class UpdateProductHandler:
    @handle(UpdateProduct)
    def update_product(self, command):
        product = get_active_product(command.product_id)

        # Ownership is checked before the payload so a non-owner learns nothing about it
        product.ensure_owned_by(command.owner_id)
        check_expected_version(product, command.expected_version)

        details = ProductDetails.from_fields(command.details or {})
        product.replace_details(command.owner_id, details)

        raise_if_cancelled()
        current_domain.repository_for(Product).add(product)
        return product
