"""Ordering database and maintenance CLI.

Usage:
    python src/manage.py setup-db              # Create all tables
    python src/manage.py drop-db               # Drop all tables
    python src/manage.py sweep-reservations    # Cancel unpaid orders whose stock hold expired
    python src/manage.py seed-catalogue        # Create demo vendors and products, print product ids
"""

import argparse
import random
import sys

SEED_DISTRICTS = ["Kathmandu", "Lalitpur", "Bhaktapur", "Kaski", "Chitwan", "Morang"]


def _domain():
    from ordering.domain import ordering

    ordering.init()
    return ordering


def setup_database():
    from ordering.utils.db import setup_db

    domain = _domain()
    print("Creating ordering database schema...")
    setup_db(domain)
    print("Done.")


def drop_database():
    from ordering.utils.db import drop_db

    domain = _domain()
    print("Dropping ordering database schema...")
    drop_db(domain)
    print("Done.")


def sweep_reservations():
    from ordering.order.lifecycle import OrderLifecycle

    domain = _domain()
    with domain.domain_context():
        released = OrderLifecycle(domain).release_expired_reservations()
    print(f"Released {len(released)} expired reservation(s).")
    for order_id in released:
        print(f"  {order_id}")


def seed_catalogue(products=10, stock=100, domain=None):
    """Create one vendor per district and spread ``products`` across them.

    Prints one product id per line so the output can be fed to the load tests.
    """
    from ordering.catalogue.product import Product
    from ordering.catalogue.vendor import Vendor

    domain = domain or _domain()
    created = []
    with domain.domain_context():
        vendor_ids = []
        for district in SEED_DISTRICTS:
            vendor = Vendor(name=f"{district} Traders", district=district)
            domain.repository_for(Vendor).add(vendor)
            vendor_ids.append(vendor.id)

        for index in range(products):
            product = Product.create(
                name=f"Seed Product {index + 1}",
                vendor_id=vendor_ids[index % len(vendor_ids)],
                base_price=float(random.randrange(200, 5000, 50)),
                stock=stock,
            )
            domain.repository_for(Product).add(product)
            created.append(str(product.id))

    for product_id in created:
        print(product_id)
    return created


def main():
    from ordering.utils.logging import configure_logging

    configure_logging()

    parser = argparse.ArgumentParser(description="Marketplace ordering management")
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")
    subparsers.add_parser("sweep-reservations", help="Release expired soft stock reservations")
    seed = subparsers.add_parser("seed-catalogue", help="Create demo vendors and stocked products")
    seed.add_argument("--products", type=int, default=10, help="Number of products to create")
    seed.add_argument("--stock", type=int, default=100, help="Units of stock per product")

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database()
    elif args.command == "sweep-reservations":
        sweep_reservations()
    elif args.command == "seed-catalogue":
        seed_catalogue(products=args.products, stock=args.stock)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
