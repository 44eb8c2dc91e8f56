"""Unit tests for dropcache.parser."""

from __future__ import annotations

from dropcache.parser import (
    HERB_TABLE,
    HERB_TOTAL_WEIGHT,
    RARE_SEED_TABLE,
    monster_url,
    parse_combat_stats,
    parse_drops,
    parse_template_params,
)

# ---------------------------------------------------------------------------
# parse_template_params
# ---------------------------------------------------------------------------


class TestParseTemplateParams:
    def test_key_value_pairs(self) -> None:
        params = parse_template_params("name=Bones|quantity=1|rarity=Always")
        assert params == {"name": "Bones", "quantity": "1", "rarity": "Always"}

    def test_positional_piece_stored_under_index(self) -> None:
        assert parse_template_params("1/128") == {"0": "1/128"}

    def test_later_positional_piece_uses_its_index(self) -> None:
        params = parse_template_params("name=Coins|extra")
        assert params == {"name": "Coins", "1": "extra"}

    def test_only_first_equals_splits(self) -> None:
        params = parse_template_params("rarity=1/128=rare")
        assert params == {"rarity": "1/128=rare"}

    def test_keys_and_values_are_trimmed(self) -> None:
        params = parse_template_params(" name = Big bones | quantity = 1 ")
        assert params == {"name": "Big bones", "quantity": "1"}

    def test_empty_key_treated_as_positional(self) -> None:
        assert parse_template_params("=value") == {"0": "=value"}


# ---------------------------------------------------------------------------
# parse_drops
# ---------------------------------------------------------------------------


class TestParseDrops:
    def test_drops_line_with_heading(self) -> None:
        wikitext = (
            "===100%===\n"
            "{{DropsLine|name=Bones|quantity=1|rarity=Always}}\n"
            "===Weapons and armour===\n"
            "{{DropsLine|name=Bronze spear|quantity=1|rarity=4/128}}\n"
        )
        drops = parse_drops(wikitext)
        assert [(d.name, d.category) for d in drops] == [
            ("Bones", "100%"),
            ("Bronze spear", "Weapons and armour"),
        ]
        assert drops[1].rarity == "4/128"

    def test_drops_before_any_heading_are_unknown(self) -> None:
        drops = parse_drops("{{DropsLine|name=Coins|quantity=5|rarity=1/4}}")
        assert drops[0].category == "Unknown"

    def test_missing_quantity_and_rarity_default(self) -> None:
        drops = parse_drops("{{DropsLine|name=Ashes}}")
        assert drops[0].quantity == "1"
        assert drops[0].rarity == "Unknown"

    def test_drops_line_without_name_is_skipped(self) -> None:
        assert parse_drops("{{DropsLine|quantity=1|rarity=Always}}") == []

    def test_quantity_and_rarity_are_verbatim(self) -> None:
        drops = parse_drops("{{DropsLine|name=Coins|quantity=25;50|rarity=~1/12.8}}")
        assert drops[0].quantity == "25;50"
        assert drops[0].rarity == "~1/12.8"

    def test_clue_is_always_tertiary(self) -> None:
        wikitext = "===Rare drop table===\n{{DropsLineClue|type=hard|rarity=1/128}}"
        drops = parse_drops(wikitext)
        assert len(drops) == 1
        assert drops[0].name == "hard clue scroll"
        assert drops[0].category == "Tertiary"
        assert drops[0].quantity == "1"

    def test_clue_category_does_not_stick(self) -> None:
        wikitext = (
            "===Other===\n"
            "{{DropsLineClue|type=easy|rarity=1/128}}\n"
            "{{DropsLine|name=Bones|rarity=Always}}\n"
        )
        drops = parse_drops(wikitext)
        assert drops[1].category == "Other"

    def test_herb_table_expansion(self) -> None:
        drops = parse_drops("===Herbs===\n{{HerbDropLines|1/6}}")
        assert len(drops) == len(HERB_TABLE) == 13
        assert drops[0].name == "Grimy guam leaf"
        assert drops[0].rarity == f"1/6 (19/{HERB_TOTAL_WEIGHT})"
        assert drops[-1].name == "Grimy dwarf weed"
        assert all(d.quantity == "1-3" for d in drops)
        assert all(d.category == "Herbs" for d in drops)

    def test_rare_seed_expansion(self) -> None:
        drops = parse_drops("===Seeds===\n{{RareSeedDropLines|1/20}}")
        assert len(drops) == len(RARE_SEED_TABLE) == 14
        assert drops[0].name == "Toadflax seed"
        assert drops[0].rarity == "1/20 then 1/33.8"
        snape = next(d for d in drops if d.name == "Snape grass seed")
        assert snape.quantity == "3"

    def test_macro_without_rate_uses_unknown(self) -> None:
        drops = parse_drops("{{HerbDropLines|chance=}}")
        assert drops[0].rarity == f"Unknown (19/{HERB_TOTAL_WEIGHT})"

    def test_templates_on_one_line_keep_left_to_right_order(self) -> None:
        line = (
            "{{DropsLine|name=First|rarity=Always}} "
            "{{DropsLineClue|type=medium|rarity=1/128}} "
            "{{DropsLine|name=Last|rarity=Always}}"
        )
        assert [d.name for d in parse_drops(line)] == [
            "First",
            "medium clue scroll",
            "Last",
        ]

    def test_four_equals_heading_is_not_a_category(self) -> None:
        wikitext = (
            "===Main===\n"
            "====Sub====\n"
            "{{DropsLine|name=Bones|rarity=Always}}\n"
        )
        assert parse_drops(wikitext)[0].category == "Main"

    def test_two_equals_heading_is_not_a_category(self) -> None:
        wikitext = "===Main===\n==Drops==\n{{DropsLine|name=Bones|rarity=Always}}"
        assert parse_drops(wikitext)[0].category == "Main"

    def test_heading_text_is_trimmed(self) -> None:
        drops = parse_drops("=== Tertiary ===\n{{DropsLine|name=Bones}}")
        assert drops[0].category == "Tertiary"

    def test_no_templates_returns_empty(self) -> None:
        assert parse_drops("The goblin is a monster.\n==Trivia==\n") == []

    def test_empty_input(self) -> None:
        assert parse_drops("") == []


# ---------------------------------------------------------------------------
# parse_combat_stats / monster_url
# ---------------------------------------------------------------------------


class TestCombatStats:
    def test_reads_infobox_values(self) -> None:
        wikitext = "{{Infobox Monster\n|combat = 2\n|hitpoints = 5\n}}"
        assert parse_combat_stats(wikitext) == (2, 5)

    def test_missing_values_are_none(self) -> None:
        assert parse_combat_stats("no infobox here") == (None, None)

    def test_first_value_wins(self) -> None:
        wikitext = "|combat1 = 9\n|combat=13\n|combat=25\n|hitpoints=20"
        assert parse_combat_stats(wikitext) == (13, 20)


class TestMonsterUrl:
    def test_spaces_become_underscores(self) -> None:
        url = monster_url("Hill Giant", "https://oldschool.runescape.wiki")
        assert url == "https://oldschool.runescape.wiki/w/Hill_Giant"

    def test_special_characters_are_encoded(self) -> None:
        url = monster_url("Man (Lumbridge)", "https://oldschool.runescape.wiki/")
        assert url == "https://oldschool.runescape.wiki/w/Man_(Lumbridge)"

    def test_apostrophe_kept_and_ampersand_encoded(self) -> None:
        url = monster_url("K'ril & co", "https://example.org")
        assert url == "https://example.org/w/K'ril_%26_co"
