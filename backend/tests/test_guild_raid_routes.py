"""Tests for guild raid API routes."""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from raid_analytics.errors import (
    InsufficientRosterError,
    NoCredentialError,
    NoDataError,
)
from raid_analytics.main import app
from raid_analytics.models.guild import GuildMember
from raid_analytics.models.results import (
    AggregatedResult,
    Highscore,
    MetaTeam,
    ResourceStatus,
    TeamDistribution,
    TimeUsed,
    TokenOverview,
    TokenOverviewRow,
)
from raid_analytics.services.team_classifier import TeamClassifier

pytestmark = pytest.mark.anyio


@pytest.fixture
def mock_service():
    """Guild service with every async method mocked."""
    service = MagicMock()
    service.classifier = TeamClassifier()
    for name in [
        "register_user",
        "unregister_user",
        "get_members",
        "set_member_name",
        "get_guild_seasons",
        "get_seasons_with_same_config",
        "get_season_results",
        "get_season_results_by_boss",
        "get_availability",
        "get_bombs",
        "get_token_overview",
        "get_time_used",
        "get_relative_performance",
        "get_team_distribution",
        "get_team_distribution_per_member",
        "get_inactive_members",
        "get_activity_per_hour",
        "get_highscores",
        "get_best_comps",
        "get_member_stats_csv",
        "get_highscores_csv",
    ]:
        setattr(service, name, AsyncMock())
    return service


@pytest.fixture
async def client(mock_service):
    """Create async test client with a mocked service."""
    # Set service directly on app.state (mimics lifespan startup)
    app.state.guild_service = mock_service
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


class TestErrorMapping:
    """Distinct failures map to distinct responses."""

    async def test_not_registered(self, client, mock_service):
        mock_service.get_season_results.side_effect = NoCredentialError("d-1")
        response = await client.get("/api/guild-raid/results", params={"discord_id": "d-1"})
        assert response.status_code == 401
        assert "not registered" in response.json()["detail"]

    async def test_no_data(self, client, mock_service):
        mock_service.get_season_results.side_effect = NoDataError(80)
        response = await client.get(
            "/api/guild-raid/results", params={"discord_id": "d-1", "season": 80}
        )
        assert response.status_code == 404
        assert "season 80" in response.json()["detail"]

    async def test_no_roster(self, client, mock_service):
        mock_service.get_bombs.side_effect = InsufficientRosterError()
        response = await client.get("/api/guild-raid/bombs", params={"discord_id": "d-1"})
        assert response.status_code == 502
        assert "no active members" in response.json()["detail"]

    async def test_bad_filter(self, client, mock_service):
        mock_service.get_season_results.side_effect = ValueError("Unknown rarity filter")
        response = await client.get(
            "/api/guild-raid/results", params={"discord_id": "d-1", "rarity": "x"}
        )
        assert response.status_code == 422

    async def test_discord_id_required(self, client):
        response = await client.get("/api/guild-raid/results")
        assert response.status_code == 422


async def test_register(client, mock_service):
    mock_service.register_user.return_value = "g-1"
    response = await client.post(
        "/api/guild-raid/register", json={"discord_id": "d-1", "api_token": "tok"}
    )
    assert response.status_code == 201
    assert response.json() == {"discord_id": "d-1", "guild_id": "g-1"}


async def test_season_results(client, mock_service):
    mock_service.get_season_results.return_value = [
        AggregatedResult(username="Alice", total_damage=3000, total_tokens=2),
        AggregatedResult(username="Bob"),
    ]
    response = await client.get(
        "/api/guild-raid/results",
        params={"discord_id": "d-1", "season": 85, "rarity": "Legendary+", "include_primes": False},
    )
    assert response.status_code == 200
    results = response.json()["results"]
    assert results[0]["average_damage"] == 1500
    assert results[1]["total_tokens"] == 0
    mock_service.get_season_results.assert_awaited_once_with("d-1", 85, "Legendary+", False)


async def test_results_by_boss(client, mock_service):
    mock_service.get_season_results_by_boss.return_value = {
        "Belisarius": [AggregatedResult(username="Alice", boss="Belisarius")]
    }
    response = await client.get("/api/guild-raid/results/by-boss", params={"discord_id": "d-1"})
    assert response.json()["bosses"]["Belisarius"][0]["username"] == "Alice"


async def test_availability(client, mock_service):
    mock_service.get_availability.return_value = [
        (GuildMember("userA", "Alice"), ResourceStatus(tokens=1, token_cooldown="00h 20m 00s")),
        (GuildMember("userB", "Sam"), ResourceStatus()),
        (GuildMember("userC", "Sam"), ResourceStatus(tokens=0)),
    ]
    response = await client.get("/api/guild-raid/availability", params={"discord_id": "d-1"})
    members = response.json()["members"]
    assert [m["user_id"] for m in members] == ["userA", "userB", "userC"]
    assert members[0]["username"] == "Alice"
    assert members[0]["token_within_hour"] is True
    assert members[0]["token_uncertainty"] == 1
    assert members[1]["token_within_hour"] is False
    assert members[1]["token_cooldown"] is None
    assert members[2]["tokens"] == 0


async def test_tokens_burnt(client, mock_service):
    mock_service.get_token_overview.return_value = TokenOverview(
        max_possible=20,
        rows=[TokenOverviewRow(username="Alice", available=1, used=15, burned=4)],
    )
    response = await client.get("/api/guild-raid/tokens-burnt", params={"discord_id": "d-1"})
    body = response.json()
    assert body["total_burned"] == 4
    assert body["assumption"]


async def test_time_used(client, mock_service):
    mock_service.get_time_used.return_value = (
        {"L1 Belisarius": TimeUsed(time=90, tokens=3, bombs=1, sideboss=(False, "L1 Belisarius"))},
        90,
    )
    response = await client.get(
        "/api/guild-raid/time-used",
        params={"discord_id": "d-1", "rarity": "Legendary", "separate_primes": True},
    )
    body = response.json()
    assert body["total_seconds"] == 90
    assert body["bosses"]["L1 Belisarius"]["sideboss"] == [False, "L1 Belisarius"]
    assert "delta" not in body["bosses"]["L1 Belisarius"]
    mock_service.get_time_used.assert_awaited_once_with("d-1", None, "Legendary", True)


async def test_time_used_with_loop_delta(client, mock_service):
    mock_service.get_time_used.return_value = (
        {
            "L1 Belisarius": TimeUsed(time=3600, tokens=10, bombs=2),
            "L1 :recycle:1 Belisarius": TimeUsed(time=3000, tokens=12, bombs=1),
        },
        6600,
    )
    response = await client.get(
        "/api/guild-raid/time-used", params={"discord_id": "d-1", "show_delta": True}
    )
    bosses = response.json()["bosses"]
    assert "delta" not in bosses["L1 Belisarius"]
    delta = bosses["L1 :recycle:1 Belisarius"]["delta"]
    assert delta["baseline"] == "L1 Belisarius"
    assert (delta["time"], delta["tokens"], delta["bombs"]) == (-600, 2, -1)
    assert delta["time_display"] == "-00h 10m 00s"


async def test_relative_performance(client, mock_service):
    mock_service.get_relative_performance.return_value = {"Alice": 112.5, "Bob": 90.0}
    response = await client.get(
        "/api/guild-raid/relative-performance", params={"discord_id": "d-1"}
    )
    members = response.json()["members"]
    assert members["Alice"]["delta"] == "+12.5%"
    assert members["Bob"]["delta"] == "-10.0%"


async def test_team_distribution(client, mock_service):
    distribution = TeamDistribution()
    distribution.add(MetaTeam.NEURO, 300)
    distribution.add(MetaTeam.OTHER, 100)
    mock_service.get_team_distribution.return_value = distribution
    response = await client.get("/api/guild-raid/team-distribution", params={"discord_id": "d-1"})
    body = response.json()
    assert body["totals"]["counts"]["Neuro"] == 1
    assert body["percentages"]["damage"]["Neuro"] == 75


async def test_team_distribution_per_member(client, mock_service):
    mock_service.get_team_distribution_per_member.return_value = {"Alice": TeamDistribution()}
    response = await client.get(
        "/api/guild-raid/team-distribution", params={"discord_id": "d-1", "per_member": True}
    )
    assert "Alice" in response.json()["members"]


async def test_inactivity(client, mock_service):
    mock_service.get_inactive_members.return_value = [("Bob", 0)]
    response = await client.get(
        "/api/guild-raid/inactivity", params={"discord_id": "d-1", "threshold": 3}
    )
    assert response.json()["members"] == [{"username": "Bob", "tokens": 0}]
    mock_service.get_inactive_members.assert_awaited_once_with("d-1", None, 3)


async def test_activity_per_hour(client, mock_service):
    mock_service.get_activity_per_hour.return_value = {hour: 0 for hour in range(24)}
    response = await client.get("/api/guild-raid/activity-per-hour", params={"discord_id": "d-1"})
    assert len(response.json()["hours"]) == 24


async def test_highscores(client, mock_service):
    mock_service.get_highscores.return_value = {
        "L1 Belisarius": [Highscore(username="Alice", value=900, team=MetaTeam.MULTIHIT)]
    }
    response = await client.get("/api/guild-raid/highscores", params={"discord_id": "d-1"})
    score = response.json()["bosses"]["L1 Belisarius"][0]
    assert score == {"username": "Alice", "value": 900, "team": "Multihit"}


async def test_best_comps(client, mock_service, make_event):
    mock_service.get_best_comps.return_value = {
        "L1 Belisarius": make_event(damage_dealt=777, hero_details=("spaceBlackmane",))
    }
    response = await client.get("/api/guild-raid/best-comps", params={"discord_id": "d-1"})
    comp = response.json()["bosses"]["L1 Belisarius"]
    assert comp["damage"] == 777
    assert comp["heroes"] == ["Ragnar"]
    assert comp["team"] == "Other"
    assert comp["flags"] == []


async def test_member_stats_export(client, mock_service):
    mock_service.get_member_stats_csv.return_value = "username,total_damage\nAlice,10\n"
    response = await client.get(
        "/api/guild-raid/export/member-stats.csv", params={"discord_id": "d-1"}
    )
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert response.text.startswith("username")


async def test_highscores_export_no_data(client, mock_service):
    mock_service.get_highscores_csv.side_effect = NoDataError()
    response = await client.get(
        "/api/guild-raid/export/highscores.csv", params={"discord_id": "d-1"}
    )
    assert response.status_code == 404


async def test_best_comps_meta_flags(client, mock_service, make_event):
    heroes = ("custoTrajann", "custoBladeChampion", "spaceBlackmane", "worldKharn", "bloodDante")
    mock_service.get_best_comps.return_value = {"L1 Belisarius": make_event(hero_details=heroes)}
    response = await client.get("/api/guild-raid/best-comps", params={"discord_id": "d-1"})
    comp = response.json()["bosses"]["L1 Belisarius"]
    assert comp["team"] == "Multihit"
    assert comp["flags"] == ["Multihit", "Custodes"]


async def test_unregister(client, mock_service):
    response = await client.delete("/api/guild-raid/register", params={"discord_id": "d-1"})
    assert response.status_code == 204
    mock_service.unregister_user.assert_awaited_once_with("d-1")


async def test_unregister_unknown_caller(client, mock_service):
    mock_service.unregister_user.side_effect = NoCredentialError("d-1")
    response = await client.delete("/api/guild-raid/register", params={"discord_id": "d-1"})
    assert response.status_code == 401


class TestMembers:
    """Listing and naming guild members."""

    async def test_list_members(self, client, mock_service):
        mock_service.get_members.return_value = [
            GuildMember("userA", "Alice"),
            GuildMember("userB", "userB"),
        ]
        response = await client.get("/api/guild-raid/members", params={"discord_id": "d-1"})
        assert response.json()["members"] == [
            {"user_id": "userA", "username": "Alice", "named": True},
            {"user_id": "userB", "username": "userB", "named": False},
        ]

    async def test_set_member_name(self, client, mock_service):
        mock_service.set_member_name.return_value = GuildMember("userB", "Bob")
        response = await client.put(
            "/api/guild-raid/members/userB/name", json={"discord_id": "d-1", "username": "Bob"}
        )
        assert response.status_code == 200
        assert response.json() == {"user_id": "userB", "username": "Bob"}
        mock_service.set_member_name.assert_awaited_once_with("d-1", "userB", "Bob")

    async def test_set_name_of_non_member(self, client, mock_service):
        mock_service.set_member_name.side_effect = ValueError("stranger is not a member")
        response = await client.put(
            "/api/guild-raid/members/stranger/name",
            json={"discord_id": "d-1", "username": "Sam"},
        )
        assert response.status_code == 422

    async def test_empty_name_rejected(self, client, mock_service):
        response = await client.put(
            "/api/guild-raid/members/userB/name", json={"discord_id": "d-1", "username": ""}
        )
        assert response.status_code == 422
        mock_service.set_member_name.assert_not_awaited()


class TestSeasons:
    """Season listing and config matching."""

    async def test_seasons(self, client, mock_service):
        mock_service.get_guild_seasons.return_value = [83, 84, 85]
        response = await client.get("/api/guild-raid/seasons", params={"discord_id": "d-1"})
        assert response.json() == {"seasons": [83, 84, 85], "latest": 85}

    async def test_no_seasons(self, client, mock_service):
        mock_service.get_guild_seasons.return_value = []
        response = await client.get("/api/guild-raid/seasons", params={"discord_id": "d-1"})
        assert response.json()["latest"] is None

    async def test_same_config(self, client, mock_service):
        mock_service.get_seasons_with_same_config.return_value = [80, 75]
        response = await client.get(
            "/api/guild-raid/seasons/same-config",
            params={"discord_id": "d-1", "season": 85, "limit": 2},
        )
        assert response.json() == {"season": 85, "matches": [80, 75]}
        mock_service.get_seasons_with_same_config.assert_awaited_once_with("d-1", 85, 2)
