"""
test_bts_detection.py — Unit Tests for BTS Classification & Aggregation
=========================================================================
Alias matching must be case/whitespace-insensitive, handle every artist
and album shape Last.fm produces, and keep member attribution in table
declaration order.
"""

from __future__ import annotations

import unittest

from armystats.bts_detection import (
    BTS_MEMBER_ALIASES,
    album_plays,
    calculate_bts_percentage,
    calculate_bts_plays,
    calculate_member_preference,
    detect_member,
    detect_top_member,
    filter_bts_tracks,
    get_favorite_bts_album,
    is_bts_track,
)
from armystats.models import MEMBERS, Track


def _t(artist, name="Song", album=None, playcount=None) -> dict:
    raw = {"name": name, "artist": artist}
    if album is not None:
        raw["album"] = {"#text": album}
    if playcount is not None:
        raw["playcount"] = str(playcount)
    return raw


class TestIsBTSTrack(unittest.TestCase):

    def test_group_match_ignores_case_and_whitespace(self):
        self.assertEqual(is_bts_track(_t("  BTS  ")), "group")
        self.assertEqual(is_bts_track(_t("bts")), "group")

    def test_korean_group_name(self):
        self.assertEqual(is_bts_track(_t("방탄소년단")), "group")

    def test_solo_member_artist(self):
        self.assertEqual(is_bts_track(_t("Agust D")), "solo")
        self.assertEqual(is_bts_track(_t("j-hope")), "solo")

    def test_group_beats_member_when_both_present(self):
        self.assertEqual(is_bts_track(_t("BTS & Jimin")), "group")

    def test_featured_member_in_title(self):
        track = _t("Charlie Puth", name="Left and Right (feat. Jung Kook of BTS)")
        self.assertEqual(is_bts_track(track), "solo")

    def test_featured_group_in_title(self):
        track = _t("Halsey", name="Boy With Luv (ft. BTS)")
        self.assertEqual(is_bts_track(track), "group")

    def test_unrelated_artist(self):
        self.assertIsNone(is_bts_track(_t("Adele", name="Hello")))

    def test_artist_object_shapes(self):
        self.assertEqual(is_bts_track({"name": "x", "artist": {"name": "BTS"}}), "group")
        self.assertEqual(is_bts_track({"name": "x", "artist": {"#text": "BTS"}}), "group")

    def test_missing_artist_does_not_raise(self):
        self.assertIsNone(is_bts_track({"name": "Hello"}))
        self.assertIsNone(is_bts_track({"name": "Hello", "artist": 42}))

    def test_accepts_track_objects(self):
        self.assertEqual(is_bts_track(Track(name="Dynamite", artist="BTS")), "group")


class TestDetectMember(unittest.TestCase):

    def test_exact_rm(self):
        self.assertEqual(detect_member(_t("RM")), "RM")

    def test_each_member_primary_name(self):
        cases = {
            "RM": "RM",
            "Jin": "Jin",
            "SUGA": "Suga",
            "j-hope": "J-Hope",
            "Jimin": "Jimin",
            "V": "V",
            "Jung Kook": "Jungkook",
        }
        for artist, member in cases.items():
            with self.subTest(artist=artist):
                self.assertEqual(detect_member(_t(artist)), member)

    def test_feature_credit(self):
        track = _t("Coldplay", name="My Universe (feat. Jimin)")
        self.assertEqual(detect_member(track), "Jimin")

    def test_declaration_order_wins(self):
        # "rm" is RM's first alias and also a substring here.
        self.assertEqual(detect_member(_t("RM & V")), "RM")

    def test_loose_substring_matching_is_kept(self):
        # Short aliases match inside unrelated names.
        self.assertEqual(detect_member(_t("Dave")), "V")

    def test_no_member(self):
        self.assertIsNone(detect_member(_t("BTS")))

    def test_alias_table_has_seven_members_in_order(self):
        self.assertEqual(tuple(BTS_MEMBER_ALIASES), MEMBERS)


class TestFilterBTSTracks(unittest.TestCase):

    def test_unrelated_tracks_are_dropped(self):
        split = filter_bts_tracks([_t("Unrelated Artist")])
        self.assertEqual(split.group_tracks, [])
        self.assertEqual(split.solo_tracks, [])
        self.assertEqual(split.all_bts_tracks, [])

    def test_partition_and_order(self):
        split = filter_bts_tracks([
            _t("Jimin", name="Like Crazy"),
            _t("Adele"),
            _t("BTS", name="Dynamite"),
        ])
        self.assertEqual([t.name for t in split.group_tracks], ["Dynamite"])
        self.assertEqual([t.name for t in split.solo_tracks], ["Like Crazy"])
        self.assertEqual([t.name for t in split.all_bts_tracks], ["Dynamite", "Like Crazy"])


class TestMemberPreference(unittest.TestCase):

    def test_empty_input_returns_all_members(self):
        prefs = calculate_member_preference([])
        self.assertEqual(len(prefs), 7)
        self.assertEqual([p.member for p in prefs], list(MEMBERS))
        self.assertTrue(all(p.plays == 0 for p in prefs))

    def test_sorted_descending_with_playcounts(self):
        prefs = calculate_member_preference([
            _t("V", playcount=3),
            _t("Jimin", playcount=5),
            _t("BTS", playcount=100),   # group plays do not count
            _t("Adele", playcount=50),
        ])
        self.assertEqual(len(prefs), 7)
        self.assertEqual((prefs[0].member, prefs[0].plays), ("Jimin", 5))
        self.assertEqual((prefs[1].member, prefs[1].plays), ("V", 3))
        self.assertEqual(sum(p.plays for p in prefs), 8)

    def test_missing_playcount_counts_once(self):
        prefs = calculate_member_preference([_t("Jin"), _t("Jin"), _t("Jin")])
        self.assertEqual((prefs[0].member, prefs[0].plays), ("Jin", 3))

    def test_ties_keep_declaration_order(self):
        prefs = calculate_member_preference([_t("Jungkook", playcount=2), _t("RM", playcount=2)])
        self.assertEqual([p.member for p in prefs[:2]], ["RM", "Jungkook"])

    def test_detect_top_member(self):
        tracks = [_t("V", playcount=1), _t("Jimin", playcount=4), _t("V", playcount=2)]
        self.assertEqual(detect_top_member(tracks), "Jimin")
        self.assertIsNone(detect_top_member([_t("BTS", playcount=9)]))


class TestAlbumsAndTotals(unittest.TestCase):

    def test_favorite_album(self):
        tracks = [
            _t("BTS", name="ON", album="Map of the Soul: 7", playcount=10),
            _t("BTS", name="Black Swan", album="Map of the Soul: 7", playcount=5),
            _t("BTS", name="Louder than bombs", album="Map of the Soul: 7", playcount=1),
            _t("BTS", name="Life Goes On", album="BE", playcount=3),
        ]
        self.assertEqual(get_favorite_bts_album(tracks), "Map of the Soul: 7")
        self.assertEqual(album_plays(tracks, "Map of the Soul: 7"), 16)

    def test_favorite_album_ties_first_encountered(self):
        tracks = [
            _t("BTS", album="BE", playcount=3),
            _t("BTS", album="Proof", playcount=3),
        ]
        self.assertEqual(get_favorite_bts_album(tracks), "BE")

    def test_favorite_album_unknown(self):
        self.assertEqual(get_favorite_bts_album([_t("BTS")]), "Unknown")
        self.assertEqual(get_favorite_bts_album([_t("Adele", album="25")]), "Unknown")

    def test_plain_string_album(self):
        tracks = [{"name": "Butter", "artist": "BTS", "album": "Butter", "playcount": "2"}]
        self.assertEqual(get_favorite_bts_album(tracks), "Butter")

    def test_bts_plays(self):
        tracks = [_t("BTS", playcount=4), _t("Jin"), _t("Adele", playcount=10)]
        self.assertEqual(calculate_bts_plays(tracks), 5)

    def test_percentage(self):
        self.assertEqual(calculate_bts_percentage(0, 0), 0)
        self.assertEqual(calculate_bts_percentage(50, 100), 50)
        self.assertEqual(calculate_bts_percentage(1, 3), 33)
        self.assertEqual(calculate_bts_percentage(1, 8), 13)
        self.assertEqual(calculate_bts_percentage(150, 100), 100)


if __name__ == "__main__":
    unittest.main()
