import re
from typing import List

INGREDIENT_LINE_RE = re.compile(r'^\s*(?:[-*•]\s*)?\**INGREDIENT\**\s*:\s*\**\s*(.+)$', re.IGNORECASE)
NUMBERED_LINE_RE = re.compile(r'^\s*\d+[.)]\s+(.+)$')


class IngredientsCleaner:
    # Typical words that introduce an ingredient list on a label
    INGREDIENTS_MARKERS = [
        "ingredients:", "ingredients", "składniki:", "składniki", "inci:", "inci",
        "zawiera:", "zawiera", "skład:", "skład", "contains:", "contains"
    ]

    STOP_WORDS = ["www.", ".com", "uwagi", "note:", "przyp"]

    def extract_ingredients_from_text(self, text: str) -> List[str]:
        """
        Extracts a list of ingredients from label text.

        Args:
            text: Free text containing an "Ingredients: a, b, c" section

        Returns:
            A list of cleaned, lowercased ingredients
        """
        text = " ".join(text.lower().split())

        ingredients_section = ""
        for marker in self.INGREDIENTS_MARKERS:
            if marker in text:
                parts = text.split(marker, 1)
                if len(parts) > 1:
                    ingredients_section = parts[1].strip()
                    break

        if not ingredients_section:
            return []

        end_patterns = [" made in", " wyprodukowano w", " best before"]
        for pattern in end_patterns:
            if pattern in ingredients_section:
                ingredients_section = ingredients_section.split(pattern, 1)[0]

        ingredients_section = re.sub(r'[•\*\+\-]', '', ingredients_section)
        raw_ingredients = [i.strip() for i in ingredients_section.split(',')]

        clean_ingredients = []
        for ingredient in raw_ingredients:
            ingredient = re.sub(r'\([^)]*\)', '', ingredient)
            ingredient = ingredient.strip()

            if len(ingredient) < 3:
                continue

            if not any(stop_word in ingredient for stop_word in self.STOP_WORDS):
                clean_ingredients.append(ingredient)

        return clean_ingredients

    def extract_from_search_response(self, text: str) -> List[str]:
        """
        Extracts ingredient names from a product-ingredient search response.

        "INGREDIENT: x" lines are preferred, then numbered list lines. If the
        response has neither, it is treated as label text. Names keep their
        original casing; duplicates are dropped case-insensitively.
        """
        if not text:
            return []

        tagged, numbered = [], []
        for line in text.splitlines():
            match = INGREDIENT_LINE_RE.match(line)
            if match:
                tagged.append(match.group(1))
                continue
            match = NUMBERED_LINE_RE.match(line)
            if match:
                numbered.append(match.group(1))

        candidates = tagged or numbered
        if not candidates:
            return self.extract_ingredients_from_text(text)

        ingredients, seen = [], set()
        for candidate in candidates:
            name = re.sub(r'\([^)]*\)', '', candidate.replace("*", "")).strip(" \t.;,")
            key = name.lower()
            if len(name) < 2 or key in seen:
                continue
            seen.add(key)
            ingredients.append(name)
        return ingredients

    def clean_text(self, text: str) -> str:
        """Collapse whitespace, lowercase and drop characters that never appear in INCI names."""
        text = " ".join(text.split())
        text = text.lower()
        text = re.sub(r'[^\w\s,.:;()\-]', '', text)

        return text
