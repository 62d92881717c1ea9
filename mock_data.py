import random
from datetime import date, timedelta
from typing import Dict, List, Optional

LANGUAGES = ["python", "typescript", "go", "java", "kotlin", "markdown"]
EDITORS = ["vscode", "JetBrains", "neovim"]
MODELS = ["default", "claude-sonnet-4", "gpt-4.1"]
REPOSITORIES = ["navikt/my-copilot", "navikt/dp-soknad", "navikt/aksel"]


def language_entry(
    name: Optional[str],
    suggestions: int = 0,
    acceptances: int = 0,
    lines_suggested: int = 0,
    lines_accepted: int = 0,
    engaged_users: int = 0,
) -> dict:
    return {
        "name": name,
        "total_engaged_users": engaged_users,
        "total_code_suggestions": suggestions,
        "total_code_acceptances": acceptances,
        "total_code_lines_suggested": lines_suggested,
        "total_code_lines_accepted": lines_accepted,
    }


def completions_group(
    editors: Dict[str, Dict[str, List[dict]]],
    languages: Optional[Dict[str, int]] = None,
    engaged_users: int = 0,
) -> dict:
    """Code completion group: editor -> model -> nested language entries."""
    return {
        "total_engaged_users": engaged_users,
        "languages": [
            {"name": name, "total_engaged_users": users}
            for name, users in (languages or {}).items()
        ],
        "editors": [
            {
                "name": editor,
                "total_engaged_users": engaged_users,
                "models": [
                    {"name": model, "is_custom_model": False, "languages": entries}
                    for model, entries in models.items()
                ],
            }
            for editor, models in editors.items()
        ],
    }


def make_snapshot(
    day: Optional[str],
    active_users: Optional[int] = None,
    engaged_users: Optional[int] = None,
    completions: Optional[dict] = None,
    ide_chat: Optional[dict] = None,
    dotcom_chat: Optional[dict] = None,
    pull_requests: Optional[dict] = None,
) -> dict:
    """Raw snapshot dict; groups left as None are absent from the record."""
    snapshot = {"date": day}
    optional = {
        "total_active_users": active_users,
        "total_engaged_users": engaged_users,
        "copilot_ide_code_completions": completions,
        "copilot_ide_chat": ide_chat,
        "copilot_dotcom_chat": dotcom_chat,
        "copilot_dotcom_pull_requests": pull_requests,
    }
    snapshot.update({key: value for key, value in optional.items() if value is not None})
    return snapshot


def generate_mock_snapshots(days: int = 28, start: date = date(2025, 1, 1), seed: int = 42) -> List[dict]:
    rng = random.Random(seed)
    snapshots = []

    for offset in range(days):
        day = (start + timedelta(days=offset)).isoformat()
        active = rng.randint(80, 120)
        engaged = rng.randint(40, active)

        editors = {}
        language_users = {}
        for editor in EDITORS:
            models = {}
            for model in MODELS[:2]:
                entries = []
                for language in rng.sample(LANGUAGES, 3):
                    suggestions = rng.randint(0, 400)
                    acceptances = rng.randint(0, suggestions)
                    lines = suggestions * rng.randint(1, 4)
                    entries.append(language_entry(
                        language,
                        suggestions=suggestions,
                        acceptances=acceptances,
                        lines_suggested=lines,
                        lines_accepted=rng.randint(0, lines),
                        engaged_users=rng.randint(1, 20),
                    ))
                    language_users[language] = language_users.get(language, 0) + rng.randint(1, 10)
                models[model] = entries
            editors[editor] = models

        ide_chat = {
            "total_engaged_users": rng.randint(10, 40),
            "editors": [
                {
                    "name": editor,
                    "total_engaged_users": rng.randint(1, 20),
                    "models": [
                        {
                            "name": model,
                            "total_engaged_users": rng.randint(1, 10),
                            "total_chats": rng.randint(0, 200),
                            "total_chat_copy_events": rng.randint(0, 30),
                            "total_chat_insertion_events": rng.randint(0, 30),
                        }
                        for model in MODELS
                    ],
                }
                for editor in EDITORS[:2]
            ],
        }

        snapshots.append(make_snapshot(
            day,
            active_users=active,
            engaged_users=engaged,
            completions=completions_group(editors, language_users, engaged_users=rng.randint(30, engaged)),
            ide_chat=ide_chat,
            # Days without dotcom chat or PR usage drop the groups entirely.
            dotcom_chat=None if offset % 7 == 6 else {
                "total_engaged_users": rng.randint(1, 15),
                "models": [{"name": "default", "total_engaged_users": rng.randint(1, 15), "total_chats": rng.randint(0, 60)}],
            },
            pull_requests=None if offset % 5 == 4 else {
                "total_engaged_users": rng.randint(1, 8),
                "repositories": [
                    {
                        "name": repository,
                        "total_engaged_users": rng.randint(1, 4),
                        "models": [{"name": "default", "total_engaged_users": 1, "total_pr_summaries_created": rng.randint(0, 6)}],
                    }
                    for repository in rng.sample(REPOSITORIES, 2)
                ],
            },
        ))

    rng.shuffle(snapshots)
    return snapshots


def generate_mock_premium_usage(year: int = 2025, month: int = 1, count: int = 40, seed: int = 7) -> dict:
    rng = random.Random(seed)
    prices = {"claude-sonnet-4": (0.04, 1.0), "gpt-4.1": (0.04, 0.0), "o3": (0.04, 1.0), "claude-opus-4": (0.04, 10.0)}
    items = []

    for _ in range(count):
        model = rng.choice(sorted(prices))
        price, multiplier = prices[model]
        quantity = rng.randint(0, 50)
        included = rng.randint(0, quantity)
        items.append({
            "product": "Copilot",
            "sku": "Copilot Premium Request",
            "model": model,
            "unitType": "requests",
            "pricePerUnit": price,
            "grossQuantity": quantity,
            "grossAmount": round(quantity * price * multiplier, 2),
            "discountQuantity": included,
            "discountAmount": round(included * price * multiplier, 2),
            "netQuantity": quantity - included,
            "netAmount": round((quantity - included) * price * multiplier, 2),
            "multiplier": multiplier,
        })

    return {
        "timePeriod": {"year": year, "month": month},
        "organization": "navikt",
        "usageItems": items,
    }


MOCK_SNAPSHOTS = generate_mock_snapshots()
MOCK_PREMIUM_USAGE = generate_mock_premium_usage()
