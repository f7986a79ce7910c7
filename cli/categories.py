#!/usr/bin/env python3

import sys
from errors import LedgerError
from models.category import SpendingType
from logger import get_logger

logger = get_logger()


def resolve_category(services, value):
    """Look up a category by ID, falling back to its name."""
    return services.categories.find(value) or services.categories.find_by_name(value)


def cmd_list(args, services):
    """List all categories in the database."""
    categories = services.categories.find_all()

    if not categories:
        logger.info("No categories found.")
        return

    logger.info("\nCategories:")
    logger.info("=" * 80)
    for category in categories:
        logger.info(f"ID: {category.id}")
        logger.info(f"Name: {category.name}")
        logger.info(f"Spending type: {category.spending_type.value}")
        if category.color:
            logger.info(f"Color: {category.color}")
        if category.description:
            logger.info(f"Description: {category.description}")
        rules = services.rules.find_by_category(category.id)
        if rules:
            logger.info(f"Rules: {len(rules)}")
        logger.info("-" * 80)

    logger.info(f"\nTotal categories: {len(categories)}")


def cmd_create(args, services):
    """Interactively create one or more categories.

    Names are collected first and created together, so a duplicate name
    anywhere in the list creates none of them.
    """
    print("\nCreate New Categories")
    print("=" * 80)
    print("Enter one category per prompt; leave the name empty to finish.")

    spending_types = ", ".join(t.value for t in SpendingType)
    payloads = []
    while True:
        name = input("\nCategory name (e.g., Groceries): ").strip()
        if not name:
            break

        payload = {"name": name}

        color = input("Color (hex, e.g. #3b82f6, press Enter to skip): ").strip()
        if color:
            payload["color"] = color

        spending_type = input(
            f"Spending type ({spending_types}, press Enter for unclassified): "
        ).strip()
        if spending_type:
            payload["spending_type"] = spending_type

        description = input("Description (optional, press Enter to skip): ").strip()
        if description:
            payload["description"] = description

        payloads.append(payload)

    if not payloads:
        logger.error("No categories entered.")
        sys.exit(1)

    try:
        created = services.categories.create_many(payloads)
    except LedgerError as e:
        logger.error(f"Error creating categories: {e}")
        sys.exit(1)

    for category in created:
        logger.info(f"✓ Category '{category.name}' created with ID: {category.id}")


def cmd_update(args, services):
    """Rename or re-describe a category."""
    category = resolve_category(services, args.category)
    if not category:
        logger.error(f"Category '{args.category}' not found.")
        sys.exit(1)

    patch = {}
    if args.name:
        patch["name"] = args.name
    if args.color:
        patch["color"] = args.color
    if args.spending_type:
        patch["spending_type"] = args.spending_type
    if args.description is not None:
        patch["description"] = args.description or None

    if not patch:
        logger.error("Nothing to change.")
        sys.exit(1)

    try:
        category = services.categories.update(category.id, patch)
    except LedgerError as e:
        logger.error(f"Error updating category: {e}")
        sys.exit(1)

    logger.info(f"✓ Category '{category.name}' updated")


def cmd_delete(args, services):
    """Delete a category by ID or name."""
    category = resolve_category(services, args.category)
    if not category:
        logger.error(f"Category '{args.category}' not found.")
        sys.exit(1)

    logger.info("\nCategory to delete:")
    logger.info(f"  ID: {category.id}")
    logger.info(f"  Name: {category.name}")
    if category.description:
        logger.info(f"  Description: {category.description}")

    if not args.yes:
        confirm = (
            input("\nAre you sure you want to delete this category? (yes/no): ")
            .strip()
            .lower()
        )
        if confirm != "yes":
            logger.info("Deletion cancelled.")
            return

    try:
        services.categories.delete(category.id)
        logger.info(f"✓ Category '{category.name}' deleted successfully.")
    except LedgerError as e:
        logger.error(f"Error deleting category: {e}")
        sys.exit(1)


def setup_parser(subparsers):
    """Setup categories subcommand parser.

    Args:
        subparsers: The subparsers object from the main CLI
    """
    parser = subparsers.add_parser(
        "categories",
        help="Manage categories",
        description="Create, list, update and delete transaction categories",
    )

    categories_subparsers = parser.add_subparsers(
        title="subcommands",
        description="Available category commands",
        dest="subcommand",
        required=True,
    )

    # categories list
    list_parser = categories_subparsers.add_parser("list", help="List all categories")
    list_parser.set_defaults(func=cmd_list)

    # categories create
    create_parser = categories_subparsers.add_parser(
        "create", help="Create categories interactively"
    )
    create_parser.set_defaults(func=cmd_create)

    # categories update
    update_parser = categories_subparsers.add_parser(
        "update",
        help="Update a category",
        description="Change a category's name, color, spending type or description",
    )
    update_parser.add_argument("category", help="Category ID or name")
    update_parser.add_argument("--name", help="New name")
    update_parser.add_argument("--color", help="Hex color, e.g. #3b82f6")
    update_parser.add_argument(
        "--spending-type",
        choices=[t.value for t in SpendingType],
        help="Spending classification",
    )
    update_parser.add_argument(
        "--description", help="Description (pass an empty string to clear it)"
    )
    update_parser.set_defaults(func=cmd_update)

    # categories delete
    delete_parser = categories_subparsers.add_parser(
        "delete",
        help="Delete a category",
        description="Delete a category that no transaction or rule uses",
    )
    delete_parser.add_argument(
        "category",
        help="Category ID or name",
    )
    delete_parser.add_argument(
        "--yes",
        action="store_true",
        help="Skip the confirmation prompt",
    )
    delete_parser.set_defaults(func=cmd_delete)
