"""Domain events for stock units (products and variants)."""

from protean.fields import Identifier, Integer, String

from ordering.domain import ordering


@ordering.event(part_of="Product")
class StockLevelChanged:
    """The quantity of a stock unit was changed by the stock ledger."""

    __version__ = 1

    product_id = Identifier(required=True)
    variant_id = Identifier()
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)
    stock_status = String(required=True)


@ordering.event(part_of="Product")
class StockDepleted:
    """A stock unit reached zero; carts referencing it have been purged."""

    __version__ = 1

    product_id = Identifier(required=True)
    variant_id = Identifier()
