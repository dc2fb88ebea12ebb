import unittest

from giftlist.slugs import slugify, unique_slug


class SlugTests(unittest.TestCase):
    def test_slugify(self):
        self.assertEqual(slugify("John & Sarah"), "john-sarah")
        self.assertEqual(slugify("  Crème Brûlée  "), "creme-brulee")
        self.assertEqual(slugify("Secret Santa 2024!"), "secret-santa-2024")

    def test_slugify_is_idempotent(self):
        for value in ("Family", "Mom & Dad", "--a--b--", "Ünïcode"):
            once = slugify(value)
            self.assertEqual(slugify(once), once)

    def test_empty_slug_uses_fallback(self):
        self.assertEqual(slugify("!!!"), "item")
        self.assertEqual(slugify("", "group"), "group")
        self.assertEqual(slugify("日本"), "item")

    def test_unique_slug_appends_counter(self):
        self.assertEqual(unique_slug("family", set()), "family")
        self.assertEqual(unique_slug("family", {"family"}), "family-2")
        self.assertEqual(unique_slug("family", {"family", "family-2"}), "family-3")


if __name__ == "__main__":
    unittest.main()
