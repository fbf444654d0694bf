import os
import sys
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import argparse
import concurrent.futures
import json

import requests

BASE = os.environ.get("STOREFRONT_BASE", "http://127.0.0.1:8000")


def add_task(i, user_id, payload):
    headers = {"Content-Type": "application/json", "X-User-Id": str(user_id)}
    try:
        r = requests.post(f"{BASE}/api/cart/items", json=payload, headers=headers, timeout=10)
        return (i, "add", r.status_code, r.text)
    except Exception as e:
        return (i, "add", "ERR", str(e))


def checkout_task(i, user_id, payload):
    headers = {"Content-Type": "application/json", "X-User-Id": str(user_id)}
    try:
        r = requests.post(f"{BASE}/api/orders", json=payload, headers=headers, timeout=20)
        return (i, "checkout", r.status_code, r.text)
    except Exception as e:
        return (i, "checkout", "ERR", str(e))


def run_add_concurrent(workers, user_id, product_id, qty):
    print(f"Running add test: workers={workers}, user={user_id}, product={product_id}, qty={qty}")
    payload = {"product_id": product_id, "quantity": qty}
    with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as ex:
        futures = [ex.submit(add_task, i, user_id, payload) for i in range(workers)]
        results = [f.result() for f in futures]
    for r in results:
        print(r)

    cart = requests.get(f"{BASE}/api/cart", headers={"X-User-Id": str(user_id)}, timeout=10).json()
    lines = [it for it in cart["items"] if it["product_id"] == product_id]
    ok = sum(1 for r in results if r[2] == 201)
    print(f"Successful adds: {ok}")
    print(f"Lines for product {product_id}: {len(lines)} (expected 1)")
    if lines:
        print(f"Quantity: {lines[0]['quantity']} (expected {ok * qty} plus any earlier adds)")


def run_checkout_concurrent(workers, base_user):
    print(f"Running checkout test: workers={workers}, users {base_user}..{base_user + workers - 1}")
    address = {
        "full_name": "Load Test",
        "email": "load@example.com",
        "phone": "08000000000",
        "address": "1 Test Street",
        "city": "Lagos",
        "state": "Lagos",
        "country": "Nigeria",
    }
    payload = {"shipping_address": address}
    with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as ex:
        futures = [ex.submit(checkout_task, i, base_user + i, payload) for i in range(workers)]
        results = [f.result() for f in futures]
    for r in results:
        print(r)
    numbers = [json.loads(r[3]).get("order_number") for r in results if r[2] == 201]
    print("Orders created:", len(numbers), "unique numbers:", len(set(numbers)))


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Concurrency test tool (cart adds or checkouts).")
    sub = parser.add_subparsers(dest="mode", required=True)

    a = sub.add_parser("add")
    a.add_argument("--workers", type=int, default=8)
    a.add_argument("--user", type=int, default=9001)
    a.add_argument("--product", type=int, default=1)
    a.add_argument("--qty", type=int, default=1)

    c = sub.add_parser("checkout")
    c.add_argument("--workers", type=int, default=4)
    c.add_argument("--base-user", type=int, default=9100)
    c.add_argument("--product", type=int, default=1)

    args = parser.parse_args()

    if args.mode == "add":
        run_add_concurrent(args.workers, args.user, args.product, args.qty)
    elif args.mode == "checkout":
        # every user needs something in the cart; they all compete for the same stock
        for i in range(args.workers):
            add_task(i, args.base_user + i, {"product_id": args.product, "quantity": 1})
        run_checkout_concurrent(args.workers, args.base_user)
