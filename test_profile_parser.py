"""Tests for profile and following page parsing."""

import pytest
from app.follow_crawler.core.exceptions import ProfileParseError
from app.follow_crawler.fetcher import ProfileParser
from app.schema.people import PlanTier

PROFILE_HTML = """
<html><body>
  <div class="profileHeaderInfo__avatar">
    <span class="sc-artwork" style='background-image: url("https://i1.example.com/avatars-000-t500x500.jpg");'></span>
  </div>
  <h2 class="profileHeaderInfo__userName">
    DXM from CVS
    <span class="verifiedBadge" title="Verified"></span>
  </h2>
  <h3 class="profileHeaderInfo__additional">
    <a class="creatorBadge" title="Artist Pro" href="/pages/pro"></a>
  </h3>
  <article class="infoStats">
    <table><tr>
      <td><a href="/dxmfromcvs/followers"><div>1,024</div></a></td>
      <td><a href="/dxmfromcvs/following"><div>87</div></a></td>
      <td><a href="/dxmfromcvs/tracks"><div>1,203</div></a></td>
    </tr></table>
  </article>
</body></html>
"""

FOLLOWING_HTML = """
<html><body>
  <ul>
    <li><div class="userBadgeListItem__title"><a href="/alice">Alice</a></div></li>
    <li><div class="userBadgeListItem__title"><a href="/bob-music">Bob</a></div></li>
    <li><div class="userBadgeListItem__title"><a href="/">Nobody</a></div></li>
    <li><div class="userBadgeListItem__title"><a href="/carol">Carol</a></div></li>
  </ul>
</body></html>
"""


def test_parse_full_profile():
    parser = ProfileParser()

    attrs = parser.parse_profile(PROFILE_HTML, "dxmfromcvs")

    assert attrs.display_name == "DXM from CVS"
    assert attrs.image_url == "https://i1.example.com/avatars-000-t500x500.jpg"
    assert attrs.verified is True
    assert attrs.plan_tier is PlanTier.PRO
    assert attrs.content_count == 1203
    assert parser.get_stats()["profiles_parsed"] == 1


def test_profile_without_badges():
    html = PROFILE_HTML.replace('<span class="verifiedBadge" title="Verified"></span>', "").replace(
        'title="Artist Pro"', 'title="Next Pro"'
    )

    attrs = ProfileParser().parse_profile(html, "dxmfromcvs")

    assert attrs.verified is False
    assert attrs.plan_tier is PlanTier.NONE


def test_artist_badge_maps_to_basic_plan():
    html = PROFILE_HTML.replace('title="Artist Pro"', 'title="Artist"')

    assert ProfileParser().parse_profile(html, "dxmfromcvs").plan_tier is PlanTier.BASIC


def test_artwork_without_url_gives_empty_image():
    html = PROFILE_HTML.replace(
        'background-image: url("https://i1.example.com/avatars-000-t500x500.jpg");', "background-color: #fff;"
    )

    assert ProfileParser().parse_profile(html, "dxmfromcvs").image_url == ""


@pytest.mark.parametrize(
    "old, new",
    [
        ("profileHeaderInfo__userName", "somethingElse"),
        ('class="sc-artwork"', 'class="placeholder"'),
        ("<div>1,203</div>", "<div>many</div>"),
        ('<td><a href="/dxmfromcvs/tracks"><div>1,203</div></a></td>', ""),
    ],
)
def test_missing_or_malformed_fields_raise(old, new):
    parser = ProfileParser()

    with pytest.raises(ProfileParseError):
        parser.parse_profile(PROFILE_HTML.replace(old, new), "dxmfromcvs")

    assert parser.get_stats()["failed_parses"] == 1


def test_parse_following_in_page_order():
    parser = ProfileParser()

    assert parser.parse_following(FOLLOWING_HTML, "dxmfromcvs") == ["alice", "bob-music", "carol"]
    assert parser.parse_following("<html></html>", "nobody") == []
    assert parser.get_stats()["following_pages_parsed"] == 2
