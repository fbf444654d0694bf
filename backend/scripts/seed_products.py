#!/usr/bin/env python3
"""
Seed the hair catalogue from a JSON file, or from the built-in sample
catalogue when no file is given.

Each entry: {slug, name, category, price (naira) or price_kobo, stock,
description, images, lengths, colors, featured, variants: [{length, color,
price or price_kobo, stock, sku}]}

Usage:
    python scripts/seed_products.py
    python scripts/seed_products.py --file catalogue.json --reset
"""
import argparse
import json
import os
import sys

# allow running from repo/scripts
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from storefront.db import SessionLocal, init_db
from storefront.repositories.product_repo import ProductRepository

SAMPLE_CATALOGUE = [
    {
        "slug": "brazilian-body-wave",
        "name": "Brazilian Body Wave Bundle",
        "category": "bundles",
        "price": 15000,
        "stock": 20,
        "description": "100% virgin Brazilian hair, body wave pattern.",
        "images": ["/images/brazilian-body-wave.jpg"],
        "lengths": ['12"', '16"', '20"'],
        "colors": ["natural-black", "1b"],
        "featured": True,
        "variants": [
            {"length": '12"', "color": "natural-black", "price": 15000, "stock": 8, "sku": "BBW-12-NB"},
            {"length": '16"', "color": "natural-black", "price": 19500, "stock": 6, "sku": "BBW-16-NB"},
            {"length": '20"', "color": "natural-black", "price": 24000, "stock": 4, "sku": "BBW-20-NB"},
            {"length": '16"', "color": "1b", "price": 20500, "stock": 3, "sku": "BBW-16-1B"},
        ],
    },
    {
        "slug": "peruvian-straight",
        "name": "Peruvian Straight Bundle",
        "category": "bundles",
        "price": 18000,
        "stock": 15,
        "description": "Silky straight Peruvian hair.",
        "images": ["/images/peruvian-straight.jpg"],
        "lengths": ['14"', '18"'],
        "colors": ["natural-black"],
        "variants": [
            {"length": '14"', "color": "natural-black", "price": 18000, "stock": 7, "sku": "PST-14-NB"},
            {"length": '18"', "color": "natural-black", "price": 23500, "stock": 5, "sku": "PST-18-NB"},
        ],
    },
    {
        "slug": "hd-lace-frontal-wig",
        "name": "HD Lace Frontal Wig",
        "category": "wigs",
        "price": 85000,
        "stock": 5,
        "description": "13x4 HD lace frontal wig, pre-plucked hairline.",
        "images": ["/images/hd-lace-frontal.jpg"],
        "featured": True,
    },
    {
        "slug": "closure-4x4",
        "name": "4x4 Lace Closure",
        "category": "closures",
        "price": 22000,
        "stock": 10,
        "description": "Swiss lace closure with free part.",
        "images": ["/images/closure-4x4.jpg"],
    },
]


def _kobo(entry: dict, naira_key: str = "price", kobo_key: str = "price_kobo") -> int:
    if entry.get(kobo_key) is not None:
        return int(entry[kobo_key])
    return int(round(float(entry.get(naira_key, 0) or 0) * 100))


def seed(entries):
    db = SessionLocal()
    repo = ProductRepository(db)
    created = 0
    variants = 0
    try:
        for entry in entries:
            slug = entry.get("slug")
            if not slug:
                continue
            category = None
            if entry.get("category"):
                cat_slug = entry["category"]
                category = repo.get_or_create_category(cat_slug, cat_slug.replace("-", " ").title())
            product = repo.create_or_update(
                slug=slug,
                name=entry.get("name") or slug,
                price_kobo=_kobo(entry),
                stock=int(entry.get("stock", 0) or 0),
                category=category,
                description=entry.get("description") or "",
                images=entry.get("images") or [],
                lengths=entry.get("lengths") or [],
                colors=entry.get("colors") or [],
                featured=bool(entry.get("featured", False)),
            )
            created += 1
            for v in entry.get("variants") or []:
                repo.upsert_variant(
                    product,
                    length=v["length"],
                    color=v["color"],
                    price_kobo=_kobo(v),
                    stock=int(v.get("stock", 0) or 0),
                    sku=v.get("sku"),
                )
                variants += 1

        db.commit()
        print(f"Seeded products: {created} (variants: {variants})")
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def load_file(path: str):
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except ValueError as e:
            raise RuntimeError(f"Failed to parse JSON from {path}: {e}")
    if isinstance(data, dict):
        return data.get("items") if isinstance(data.get("items"), list) else list(data.values())
    return data if isinstance(data, list) else []


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("--file", "-f", default=None, help="Path to a catalogue JSON file")
    parser.add_argument("--reset", action="store_true", help="Drop and recreate tables first")
    args = parser.parse_args()
    if args.file and not os.path.exists(args.file):
        print("File not found:", args.file)
        sys.exit(1)
    init_db(reset=args.reset)
    seed(load_file(args.file) if args.file else SAMPLE_CATALOGUE)
