"""REST endpoints for guild raid analytics."""

from dataclasses import asdict
from typing import Annotated, Awaitable, Optional, TypeVar

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import Response
from pydantic import BaseModel, Field

from raid_analytics.errors import (
    InsufficientRosterError,
    NoCredentialError,
    NoDataError,
    UpstreamError,
)
from raid_analytics.services.derived_metrics import loop_deltas
from raid_analytics.services.guild_service import GuildService
from raid_analytics.utils.math_utils import format_delta
from raid_analytics.utils.time_utils import seconds_to_string, within_next_hour

router = APIRouter(prefix="/api/guild-raid", tags=["guild-raid"])

T = TypeVar("T")

DiscordId = Annotated[str, Query(min_length=1, description="Registered caller")]
Season = Annotated[Optional[int], Query(description="Season number, current when omitted")]
RarityFilter = Annotated[Optional[str], Query(description="Rarity or Legendary+")]


class RegisterRequest(BaseModel):
    """Request body for registering an API token."""

    discord_id: str
    api_token: str


class RegisterResponse(BaseModel):
    """Response from registering an API token."""

    discord_id: str
    guild_id: str | None


class MemberNameRequest(BaseModel):
    """Request body for naming a guild member."""

    discord_id: str
    username: str = Field(min_length=1)


def get_service(request: Request) -> GuildService:
    return request.app.state.guild_service


def _signed_duration(seconds: int) -> str:
    sign = "+" if seconds >= 0 else "-"
    return f"{sign}{seconds_to_string(abs(seconds))}"


async def _run(call: Awaitable[T]) -> T:
    """Await a service call, mapping each failure to its own HTTP error."""
    try:
        return await call
    except NoCredentialError as e:
        raise HTTPException(
            status_code=401,
            detail="You are not registered. Register your API token first.",
        ) from e
    except NoDataError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except InsufficientRosterError as e:
        raise HTTPException(status_code=502, detail=f"Guild has no active members: {e}") from e
    except UpstreamError as e:
        raise HTTPException(status_code=502, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e


@router.post("/register", response_model=RegisterResponse, status_code=201)
async def register(request: Request, body: RegisterRequest):
    """Register (or replace) a caller's API token."""
    guild_id = await _run(get_service(request).register_user(body.discord_id, body.api_token))
    return RegisterResponse(discord_id=body.discord_id, guild_id=guild_id)


@router.delete("/register", status_code=204)
async def unregister(request: Request, discord_id: DiscordId):
    """Delete a caller's stored API token."""
    await _run(get_service(request).unregister_user(discord_id))
    return Response(status_code=204)


@router.get("/members")
async def members(request: Request, discord_id: DiscordId):
    """Current guild members; members without a stored name are listed by id."""
    roster = await _run(get_service(request).get_members(discord_id))
    return {
        "members": [
            {
                "user_id": member.user_id,
                "username": member.display_name,
                "named": member.display_name != member.user_id,
            }
            for member in roster
        ]
    }


@router.put("/members/{user_id}/name")
async def set_member_name(request: Request, user_id: str, body: MemberNameRequest):
    """Set or update the display name of a guild member."""
    member = await _run(
        get_service(request).set_member_name(body.discord_id, user_id, body.username)
    )
    return {"user_id": member.user_id, "username": member.display_name}


@router.get("/seasons")
async def seasons(request: Request, discord_id: DiscordId):
    """Raid seasons the guild has data for."""
    available = await _run(get_service(request).get_guild_seasons(discord_id))
    return {"seasons": available, "latest": available[-1] if available else None}


@router.get("/seasons/same-config")
async def seasons_with_same_config(
    request: Request,
    discord_id: DiscordId,
    season: Season = None,
    limit: Annotated[int, Query(ge=1, le=20)] = 5,
):
    """Earlier seasons that used the same raid config as ``season``."""
    matches = await _run(
        get_service(request).get_seasons_with_same_config(discord_id, season, limit)
    )
    return {"season": season, "matches": matches}


@router.get("/results")
async def season_results(
    request: Request,
    discord_id: DiscordId,
    season: Season = None,
    rarity: RarityFilter = None,
    include_primes: bool = True,
):
    """Damage, tokens and bombs per member for a season."""
    results = await _run(
        get_service(request).get_season_results(discord_id, season, rarity, include_primes)
    )
    return {"results": [r.to_dict() | {"average_damage": r.average_damage} for r in results]}


@router.get("/results/by-boss")
async def season_results_by_boss(
    request: Request,
    discord_id: DiscordId,
    season: Season = None,
    rarity: RarityFilter = None,
    include_primes: bool = True,
):
    """Per-member results for every boss of a season."""
    grouped = await _run(
        get_service(request).get_season_results_by_boss(
            discord_id, season, rarity, include_primes
        )
    )
    return {
        "bosses": {boss: [r.to_dict() for r in results] for boss, results in grouped.items()}
    }


@router.get("/availability")
async def availability(request: Request, discord_id: DiscordId):
    """Estimated tokens and bomb per member right now.

    Token balances are estimates with an uncertainty of one token.
    """
    statuses = await _run(get_service(request).get_availability(discord_id))
    return {
        "members": [
            {"user_id": member.user_id, "username": member.display_name}
            | status.to_dict()
            | {
                "token_within_hour": status.token_cooldown is not None
                and within_next_hour(status.token_cooldown)
            }
            for member, status in statuses
        ]
    }


@router.get("/bombs")
async def bombs(
    request: Request,
    discord_id: DiscordId,
    season: Season = None,
    rarity: RarityFilter = None,
):
    """Bombs used per member for a season."""
    return {"bombs": await _run(get_service(request).get_bombs(discord_id, season, rarity))}


@router.get("/tokens-burnt")
async def tokens_burnt(request: Request, discord_id: DiscordId):
    """Tokens each member lost to sitting at the cap this season."""
    overview = await _run(get_service(request).get_token_overview(discord_id))
    return overview.to_dict()


@router.get("/time-used")
async def time_used(
    request: Request,
    discord_id: DiscordId,
    season: Season = None,
    rarity: RarityFilter = None,
    separate_primes: bool = False,
    show_delta: bool = False,
):
    """Approximate time and tokens spent on each boss.

    With ``show_delta`` every looped boss is compared against its first run.
    """
    per_boss, total = await _run(
        get_service(request).get_time_used(discord_id, season, rarity, separate_primes)
    )
    bosses = {label: asdict(used) for label, used in per_boss.items()}
    if show_delta:
        for label, delta in loop_deltas(per_boss).items():
            bosses[label]["delta"] = asdict(delta) | {
                "time_display": _signed_duration(delta.time)
            }
    return {"bosses": bosses, "total_seconds": total}


@router.get("/relative-performance")
async def relative_performance(
    request: Request,
    discord_id: DiscordId,
    season: Season = None,
    rarity: RarityFilter = None,
):
    """Damage per token relative to the guild average (100 = average)."""
    performance = await _run(
        get_service(request).get_relative_performance(discord_id, season, rarity)
    )
    return {
        "members": {
            name: {"value": value, "delta": format_delta(value)}
            for name, value in performance.items()
        }
    }


@router.get("/team-distribution")
async def team_distribution(
    request: Request,
    discord_id: DiscordId,
    season: Season = None,
    rarity: RarityFilter = None,
    per_member: bool = False,
):
    """Meta team usage for the guild, or per member as percentages."""
    service = get_service(request)
    if per_member:
        distributions = await _run(
            service.get_team_distribution_per_member(discord_id, season, rarity)
        )
        return {"members": {name: d.to_dict() for name, d in distributions.items()}}

    distribution = await _run(service.get_team_distribution(discord_id, season, rarity))
    return {
        "totals": distribution.to_dict(),
        "percentages": distribution.as_percentages().to_dict(),
    }


@router.get("/inactivity")
async def inactivity(
    request: Request,
    discord_id: DiscordId,
    season: Season = None,
    threshold: Annotated[int, Query(ge=1)] = 1,
):
    """Members who used fewer than ``threshold`` tokens."""
    inactive = await _run(get_service(request).get_inactive_members(discord_id, season, threshold))
    return {"members": [{"username": name, "tokens": tokens} for name, tokens in inactive]}


@router.get("/activity-per-hour")
async def activity_per_hour(request: Request, discord_id: DiscordId, season: Season = None):
    """Battle tokens used per UTC hour of the day."""
    hours = await _run(get_service(request).get_activity_per_hour(discord_id, season))
    return {"hours": hours}


@router.get("/highscores")
async def highscores(
    request: Request,
    discord_id: DiscordId,
    season: Season = None,
    rarity: RarityFilter = None,
):
    """Best single hit per member for every boss."""
    scores = await _run(get_service(request).get_highscores(discord_id, season, rarity))
    return {"bosses": {label: [asdict(s) for s in entries] for label, entries in scores.items()}}


@router.get("/best-comps")
async def best_comps(
    request: Request,
    discord_id: DiscordId,
    season: Season = None,
    rarity: RarityFilter = None,
):
    """Highest-damage battle for every boss and prime."""
    service = get_service(request)
    comps = await _run(service.get_best_comps(discord_id, season, rarity))
    return {
        "bosses": {
            label: {
                "user_id": event.user_id,
                "damage": event.damage_dealt,
                "heroes": [service.classifier.get_character_name(h) for h in event.hero_details],
                "team": service.classifier.classify(event.hero_details).value,
                "flags": [
                    team.value
                    for team, matched in service.classifier.matching_teams(
                        event.hero_details
                    ).items()
                    if matched
                ],
            }
            for label, event in comps.items()
        }
    }


@router.get("/export/member-stats.csv")
async def export_member_stats(
    request: Request,
    discord_id: DiscordId,
    season: Season = None,
    rarity: RarityFilter = None,
):
    """Member stats with team usage as CSV."""
    csv = await _run(get_service(request).get_member_stats_csv(discord_id, season, rarity))
    return Response(content=csv, media_type="text/csv")


@router.get("/export/highscores.csv")
async def export_highscores(
    request: Request,
    discord_id: DiscordId,
    season: Season = None,
    rarity: RarityFilter = None,
):
    """Season highscores as CSV."""
    csv = await _run(get_service(request).get_highscores_csv(discord_id, season, rarity))
    return Response(content=csv, media_type="text/csv")
