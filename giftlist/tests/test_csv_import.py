import unittest
from datetime import date

from giftlist.csv_import import CsvImportError, import_gifts, map_status, parse_gift_csv
from giftlist.db import InMemoryDbClient
from shared.types import GiftStatus

SAMPLE = """Recipient Name,Overall Budget,Gift,Actual Cost,Purchase Status,Store,Gift Category,Gift Priority,Order #,Delivery Status,Total Gifts (Count),Total Spent (Sum)
Mom,"$1,200.00",Scarf,$45.50,Purchased,Nordstrom,Clothing,2,A-1,Delivering,2,$95.50
Mom,$1000,Candle,50,Delivered,,Home,9,,,2,$95.50
Dad,,,,,,,,,,,
,$20,Orphan,5,Purchased,,,,,,,
Sis,$80,Book,,Need to sort,,,,,,,
"""


class StatusMappingTests(unittest.TestCase):
    def test_map_status(self):
        cases = [
            ("", "", GiftStatus.PLANNED),
            ("Need to sort", "", GiftStatus.PLANNED),
            ("Purchased", "Delivering", GiftStatus.PURCHASED),
            ("Purchased", "Delivered", GiftStatus.DELIVERED),
            ("Delivered", "", GiftStatus.DELIVERED),
            ("Transferred", "", GiftStatus.DELIVERED),
            ("Purchased", "", GiftStatus.PURCHASED),
            ("Maybe", "", GiftStatus.PLANNED),
        ]
        for purchase, delivery, expected in cases:
            with self.subTest(purchase=purchase, delivery=delivery):
                self.assertEqual(map_status(purchase, delivery), expected)


class ParseGiftCsvTests(unittest.TestCase):
    def test_rows_grouped_by_recipient(self):
        parsed = parse_gift_csv(SAMPLE)
        self.assertEqual([m.name for m in parsed.members], ["Mom", "Dad", "Sis"])
        self.assertEqual(parsed.skipped_rows, 1)
        self.assertEqual(parsed.gift_count, 3)

        mom = parsed.members[0]
        self.assertEqual(mom.budget, 1200.0)
        self.assertEqual(mom.notes, "Total Gifts: 2\nTotal Spent: $95.50")
        scarf, candle = mom.gifts
        self.assertEqual((scarf.cost, scarf.status, scarf.priority), (45.5, GiftStatus.PURCHASED, 2))
        self.assertEqual(
            scarf.notes,
            "Store: Nordstrom\nCategory: Clothing\nOrder #: A-1\nDelivery: Delivering",
        )
        self.assertEqual((candle.status, candle.priority), (GiftStatus.DELIVERED, None))
        self.assertEqual(candle.notes, "Category: Home")

        dad, sis = parsed.members[1:]
        self.assertEqual(dad.gifts, [])
        self.assertIsNone(dad.notes)
        self.assertEqual(sis.gifts[0].cost, 0.0)
        self.assertEqual(sis.gifts[0].status, GiftStatus.PLANNED)

    def test_missing_columns_rejected(self):
        with self.assertRaises(CsvImportError):
            parse_gift_csv("Name,Cost\nMom,10\n")
        with self.assertRaises(CsvImportError):
            parse_gift_csv("")


class ImportGiftsTests(unittest.TestCase):
    def test_import_creates_group_members_and_gifts(self):
        db = InMemoryDbClient()
        result = import_gifts(db, "u1", parse_gift_csv(SAMPLE), today=date(2024, 11, 2))

        self.assertEqual((result.members, result.gifts, result.skipped_rows), (3, 3, 1))
        self.assertEqual(result.group.slug, "imported-gifts")
        self.assertEqual(result.group.description, "Imported from CSV on 2024-11-02")

        members = db.list_members("u1", result.group.id)
        self.assertEqual([m.name for m in members], ["Mom", "Dad", "Sis"])
        self.assertEqual(members[0].budget, 1200.0)
        self.assertIsNone(members[1].budget)
        self.assertEqual(
            [g.name for g in db.list_gifts("u1")], ["Scarf", "Candle", "Book"]
        )

        again = import_gifts(db, "u1", parse_gift_csv(SAMPLE))
        self.assertEqual(again.group.slug, "imported-gifts-2")


if __name__ == "__main__":
    unittest.main()
