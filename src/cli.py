"""
Command-line interface for the Buena storefront.

This script wires the ``RetailApp`` facade into an interactive CLI
loop.  It prompts the user for input, invokes methods on the
``RetailApp`` instance and prints results.  Separating the CLI from
the business logic keeps the latter testable and free from I/O code.
"""

import sys

import logging_config
from app import RetailApp
from config import Settings
from payment_service import PaymentMethod

# Demo card used for checkout; the mock gateway approves it
DEMO_CARD = dict(type="card", last4="4242", brand="Visa", expiry_month=12, expiry_year=2030)


def interactive_cli() -> None:
    """Provide a simple command-line interface to interact with the storefront."""
    settings = Settings.from_env()
    logging_config.configure_logging(settings.log_dir, settings.log_level_value)
    app = RetailApp.build(settings)

    def print_menu() -> None:
        print("\n-- Buena Storefront --")
        print("1. Sign in")
        print("2. List Products")
        print("3. Add Product to Cart")
        print("4. View Cart")
        print("5. Checkout")
        print("6. Price Quote")
        print("7. Inventory Summary (Admin)")
        print("8. Cache Stats")
        print("0. Exit")

    while True:
        print_menu()
        choice = input("Select an option: ").strip()
        if choice == "1":
            email = input("Email: ").strip()
            ok, msg = app.login(email)
            print(msg)
        elif choice == "2":
            search = input("Search (blank for all): ").strip() or None
            products = app.list_products(search=search)
            if not products:
                print("No products available.")
            else:
                print("\nAvailable Products:")
                for p in products:
                    stock = "in stock" if p["is_in_stock"] else "out of stock"
                    print(f"{p['id']}. {p['name']} - ${p['base_price']:.2f} ({stock})")
        elif choice == "3":
            pid = input("Enter Product ID: ").strip()
            try:
                qty = int(input("Enter quantity: "))
            except ValueError:
                print("Please enter a valid quantity.")
                continue
            ok, msg = app.add_to_cart(pid, qty)
            print(msg)
        elif choice == "4":
            lines = app.view_cart()
            if not lines:
                print("Cart is empty.")
            else:
                print("\nCart Contents:")
                for _, name, qty, line_total in lines:
                    print(f"{name} x {qty} = ${line_total:.2f}")
                summary = app.cart.get_cart_summary()
                print(f"Subtotal: ${summary['subtotal']:.2f}")
        elif choice == "5":
            if app.current_user is None:
                print("Please sign in first.")
                continue
            methods = app.payments.get_supported_methods()
            print("Select payment method:")
            for idx, method in enumerate(methods, start=1):
                print(f"{idx}. {method}")
            try:
                method = methods[int(input("Choice: ").strip()) - 1]
            except (ValueError, IndexError):
                print("Invalid payment method.")
                continue
            pm = PaymentMethod(**DEMO_CARD) if method == "card" else PaymentMethod(type=method)
            ok, receipt = app.checkout(pm)
            if ok:
                print("\nPurchase successful! Receipt:")
                print(receipt)
            else:
                print(f"Checkout failed: {receipt}")
        elif choice == "6":
            pid = input("Enter Product ID: ").strip()
            try:
                qty = int(input("Enter quantity: "))
            except ValueError:
                print("Please enter a valid quantity.")
                continue
            ok, msg = app.quote(pid, qty)
            print(msg)
        elif choice == "7":
            if not app.current_user_is_admin():
                print("Admin access required.")
                continue
            summary = app.inventory_summary()
            print(f"Units: {summary['total_items']}  Value: ${summary['total_value']:.2f}")
            print(f"Low stock: {summary['low_stock_count']}  Out of stock: {summary['out_of_stock_count']}")
            for s in app.inventory.reorder_suggestions():
                print(f"Reorder {s['suggested_quantity']} x {s['product_name']} ({s['supplier']})")
        elif choice == "8":
            stats = app.cache_stats()
            print(
                f"Entries: {stats['total_entries']}  Size: {stats['total_size']}/{stats['max_size']} bytes  "
                f"Hit rate: {stats['hit_rate']:.0%}  Evictions: {stats['evictions']}"
            )
        elif choice == "0":
            print("Exiting application.")
            break
        else:
            print("Invalid option. Please try again.")


def main() -> None:
    try:
        interactive_cli()
    except KeyboardInterrupt:
        print("\nInterrupted by user. Exiting.")
        sys.exit(0)


if __name__ == "__main__":
    main()
