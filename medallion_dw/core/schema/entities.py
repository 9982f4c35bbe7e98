"""
Entity registry: which relations exist in each layer, their business keys,
where their raw feeds come from and the order in which they are loaded.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Layer(str, Enum):
    """Warehouse layers, in increasing order of trust."""

    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"


class TableRef(BaseModel):
    """
    Address of one relation in the store.

    Attributes:
        layer: Layer the relation lives in
        entity: Entity name within the layer
    """

    model_config = ConfigDict(frozen=True)

    layer: Layer
    entity: str = Field(..., min_length=1)

    @property
    def qualified_name(self) -> str:
        return f"{self.layer.value}.{self.entity}"

    @classmethod
    def parse(cls, qualified_name: str) -> "TableRef":
        """
        Parse a "layer.entity" name.

        Args:
            qualified_name: Name such as "silver.crm_cust_info"

        Returns:
            TableRef

        Raises:
            ValueError: If the name is not of the form layer.entity
        """
        layer, sep, entity = qualified_name.strip().partition(".")
        if not sep or not entity:
            raise ValueError(f"Table name must be 'layer.entity', got '{qualified_name}'")
        return cls(layer=Layer(layer), entity=entity)

    def __str__(self) -> str:
        return self.qualified_name


class EntityDefinition(BaseModel):
    """
    Static description of one warehouse entity.

    Attributes:
        name: Entity name (shared by the raw feed and the silver relation)
        layer: Layer the entity is materialized in
        business_key: Columns that identify a row
        source_path: Raw feed location relative to the input directory
        deduplicated: Whether conformance keeps one row per business key
        versioned: Whether rows carry a validity interval
    """

    model_config = ConfigDict(frozen=True)

    name: str
    layer: Layer
    business_key: tuple[str, ...]
    source_path: str | None = None
    deduplicated: bool = False
    versioned: bool = False

    @property
    def table(self) -> TableRef:
        return TableRef(layer=self.layer, entity=self.name)


ENTITIES: dict[str, EntityDefinition] = {
    entity.name: entity
    for entity in [
        EntityDefinition(
            name="crm_cust_info",
            layer=Layer.SILVER,
            business_key=("cst_id",),
            source_path="source_crm/cust_info.csv",
            deduplicated=True,
        ),
        EntityDefinition(
            name="crm_prd_info",
            layer=Layer.SILVER,
            business_key=("prd_id",),
            source_path="source_crm/prd_info.csv",
            deduplicated=True,
            versioned=True,
        ),
        EntityDefinition(
            name="crm_sales_details",
            layer=Layer.SILVER,
            business_key=("sls_ord_num", "sls_prd_key", "sls_cust_id"),
            source_path="source_crm/sales_details.csv",
            deduplicated=True,
        ),
        EntityDefinition(
            name="erp_cust_az12",
            layer=Layer.SILVER,
            business_key=("cid",),
            source_path="source_erp/CUST_AZ12.csv",
        ),
        EntityDefinition(
            name="erp_loc_a101",
            layer=Layer.SILVER,
            business_key=("cid",),
            source_path="source_erp/LOC_A101.csv",
        ),
        EntityDefinition(
            name="erp_px_cat_g1v2",
            layer=Layer.SILVER,
            business_key=("id",),
            source_path="source_erp/PX_CAT_G1V2.csv",
        ),
        EntityDefinition(
            name="dim_customers",
            layer=Layer.GOLD,
            business_key=("customer_key",),
        ),
        EntityDefinition(
            name="dim_products",
            layer=Layer.GOLD,
            business_key=("product_key",),
        ),
        EntityDefinition(
            name="fact_sales",
            layer=Layer.GOLD,
            business_key=("order_number", "product_key", "customer_key"),
        ),
    ]
}

# Silver entities do not read each other, so any order works; this one
# mirrors the source systems.
SILVER_LOAD_ORDER: tuple[str, ...] = (
    "crm_cust_info",
    "crm_prd_info",
    "crm_sales_details",
    "erp_cust_az12",
    "erp_loc_a101",
    "erp_px_cat_g1v2",
)

# Dimensions first: the fact resolves their surrogate keys.
GOLD_BUILD_ORDER: tuple[str, ...] = (
    "dim_customers",
    "dim_products",
    "fact_sales",
)


def get_entity(name: str) -> EntityDefinition:
    """
    Look up an entity definition by name.

    Raises:
        KeyError: If the entity is unknown
    """
    try:
        return ENTITIES[name]
    except KeyError:
        raise KeyError(f"Unknown entity: {name}") from None
