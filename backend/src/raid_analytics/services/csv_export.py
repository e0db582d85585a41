"""CSV exports of aggregated season statistics."""

import pandas as pd

from raid_analytics.models.results import AggregatedResult, Highscore, MetaTeam, TeamDistribution

MEMBER_STATS_COLUMNS = [
    "username",
    "total_damage",
    "total_tokens",
    "average_damage",
    "bomb_count",
    "prime_damage",
    "min_dmg",
    "max_dmg",
]


def member_stats_frame(
    results: list[AggregatedResult],
    distributions: dict[str, TeamDistribution] | None = None,
) -> pd.DataFrame:
    """One row per member with totals and, if given, team usage percentages.

    ``distributions`` is keyed by display name and should already be in
    percentages. Members without a distribution get 0 for every team.
    """
    stats = pd.DataFrame(
        [{**result.to_dict(), "average_damage": result.average_damage} for result in results],
        columns=[*MEMBER_STATS_COLUMNS, "boss", "set", "tier", "started_on"],
    )[MEMBER_STATS_COLUMNS]
    stats["average_damage"] = stats["average_damage"].astype(float).round(0)

    if not distributions:
        return stats

    team_rows = [
        {
            "username": username,
            **{f"{team.value} tokens %": distribution.counts[team] for team in MetaTeam},
            **{f"{team.value} damage %": distribution.damage[team] for team in MetaTeam},
        }
        for username, distribution in distributions.items()
    ]
    teams = pd.DataFrame(team_rows)
    merged = stats.merge(teams, on="username", how="left")
    team_columns = [column for column in teams.columns if column != "username"]
    merged[team_columns] = merged[team_columns].fillna(0).round(1)
    return merged


def member_stats_csv(
    results: list[AggregatedResult],
    distributions: dict[str, TeamDistribution] | None = None,
) -> str:
    return member_stats_frame(results, distributions).to_csv(index=False)


def highscores_csv(highscores: dict[str, list[Highscore]]) -> str:
    """Flatten per-boss highscores into ``boss,username,damage,team`` rows."""
    rows = [
        {
            "boss": label,
            "username": score.username,
            "damage": score.value,
            "team": score.team.value,
        }
        for label, scores in highscores.items()
        for score in scores
    ]
    frame = pd.DataFrame(rows, columns=["boss", "username", "damage", "team"])
    return frame.to_csv(index=False)
