"""
Product Domain Model

Represents a catalog product as held by the storefront client.
The remote API is not consistent about field naming (snake_case from the
database, camelCase from older admin payloads), so every renamed field
accepts both spellings on input and dumps as snake_case.
"""
from pydantic import BaseModel, Field, ConfigDict, AliasChoices, field_validator
from typing import Any, Dict, List, Optional
from decimal import Decimal


class ProductVariant(BaseModel):
    """A purchasable variant of a product (size, finish, pack)"""
    name: str = Field(..., description="Variant label")
    price: Optional[Decimal] = Field(None, description="Variant price override", ge=0)
    stock: Optional[int] = Field(None, description="Variant stock level")
    sku: Optional[str] = Field(None, description="Variant SKU")

    model_config = ConfigDict(extra="allow")


class ProductReview(BaseModel):
    """A customer review attached to a product"""
    id: Optional[str] = Field(None, description="Review ID assigned by the server")
    product_id: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("product_id", "productId"),
        description="Reviewed product ID",
    )
    user_name: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("user_name", "userName", "name"),
        description="Display name of the reviewer",
    )
    rating: Optional[int] = Field(None, description="Star rating", ge=1, le=5)
    comment: Optional[str] = Field(None, description="Free-text review")
    date: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("date", "created_at", "createdAt"),
        description="Review date as sent by the server",
    )

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    @field_validator("id", "product_id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if value is None:
            return None
        return str(value)


class Product(BaseModel):
    """
    Product domain model - one entry of the storefront catalog

    Fields:
        id: Product identifier (unique within a catalog list)
        name: Display name
        slug: URL slug used by the product detail endpoint
        price: Base price
        category: Category display name
        category_slug: Category slug (wire: category_slug or categorySlug)
        description: Long description
        short_description: Teaser text
        image: Main image URL
        images: Gallery image URLs
        stock: Units available
        variants: Purchasable variants
        key_features / features: Bullet lists shown on the detail page
        custom_form_config / default_form_fields: Custom-request form setup
        reviews: Product reviews
        is_best_seller: Best-seller badge
        is_custom_request: Product is made to order via the custom form
    """

    id: str = Field(..., description="Product ID")
    name: str = Field(..., description="Product name")
    slug: Optional[str] = Field(None, description="URL slug")
    price: Decimal = Field(Decimal("0"), description="Base price", ge=0)

    category: Optional[str] = Field(None, description="Category name")
    category_slug: Optional[str] = Field(
        None, validation_alias=AliasChoices("category_slug", "categorySlug")
    )
    description: Optional[str] = Field(None, description="Product description")
    short_description: Optional[str] = Field(
        None, validation_alias=AliasChoices("short_description", "shortDescription")
    )

    image: Optional[str] = Field(None, description="Main image URL")
    images: List[str] = Field(default_factory=list)
    stock: int = Field(0, description="Units in stock")
    variants: List[ProductVariant] = Field(default_factory=list)

    key_features: List[str] = Field(
        default_factory=list, validation_alias=AliasChoices("key_features", "keyFeatures")
    )
    features: List[str] = Field(default_factory=list)
    custom_form_config: List[Dict[str, Any]] = Field(
        default_factory=list,
        validation_alias=AliasChoices("custom_form_config", "customFormConfig"),
    )
    default_form_fields: List[Any] = Field(
        default_factory=list,
        validation_alias=AliasChoices("default_form_fields", "defaultFormFields"),
    )
    reviews: List[ProductReview] = Field(default_factory=list)

    is_best_seller: bool = Field(
        False, validation_alias=AliasChoices("is_best_seller", "isBestSeller")
    )
    is_custom_request: bool = Field(
        False, validation_alias=AliasChoices("is_custom_request", "isCustomRequest")
    )

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        # Database ids arrive as integers
        if isinstance(value, int):
            return str(value)
        return value

    @field_validator(
        "images", "variants", "key_features", "features",
        "custom_form_config", "default_form_fields", "reviews",
        mode="before",
    )
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("price", "stock", mode="before")
    @classmethod
    def _none_as_zero(cls, value: Any) -> Any:
        # Columns added after launch are NULL for older rows
        return 0 if value is None else value

    @field_validator("is_best_seller", "is_custom_request", mode="before")
    @classmethod
    def _none_as_false(cls, value: Any) -> Any:
        return False if value is None else value

    @property
    def is_out_of_stock(self) -> bool:
        return self.stock <= 0

    def to_dict(self) -> dict:
        """Dump to a JSON-compatible dict (snake_case keys, prices as floats)"""
        data = self.model_dump(mode="json")
        data["price"] = float(self.price)
        for variant, dumped in zip(self.variants, data["variants"]):
            if variant.price is not None:
                dumped["price"] = float(variant.price)
        return data


def map_product_from_wire(payload: Dict[str, Any]) -> Product:
    """Map an API or cache payload to a Product"""
    return Product.model_validate(payload)
