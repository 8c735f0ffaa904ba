from __future__ import annotations

import argparse
from typing import Sequence

from . import db


def _split_list(value: str | None) -> list[str] | None:
    if value is None:
        return None
    return [item.strip() for item in value.split(",") if item.strip()]


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="english-tutor", description="English tutor backend")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init-db", help="Create the database tables")

    add_user = commands.add_parser("add-user", help="Create a learner, or update an existing one")
    add_user.add_argument("--email", required=True)
    add_user.add_argument("--name")
    add_user.add_argument("--native-language", dest="native_language")
    add_user.add_argument("--level")
    add_user.add_argument("--learning-goal", dest="learning_goal")
    add_user.add_argument("--focus")
    add_user.add_argument("--occupation")
    add_user.add_argument("--interests", help="Comma-separated list")
    add_user.add_argument("--preferred-topics", dest="preferred_topics", help="Comma-separated list")
    add_user.add_argument("--preferred-content-type", dest="preferred_content_type")
    add_user.add_argument("--voice")

    serve = commands.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--reload", action="store_true")
    return parser.parse_args(argv)


def _profile_fields(args: argparse.Namespace) -> dict[str, object]:
    fields: dict[str, object] = {
        "name": args.name,
        "native_language": args.native_language,
        "level": args.level,
        "learning_goal": args.learning_goal,
        "focus": args.focus,
        "occupation": args.occupation,
        "interests": _split_list(args.interests),
        "preferred_topics": _split_list(args.preferred_topics),
        "preferred_content_type": args.preferred_content_type,
        "voice": args.voice,
    }
    return {key: value for key, value in fields.items() if value is not None}


def main(argv: Sequence[str] | None = None) -> None:
    args = _parse_args(argv)

    if args.command == "init-db":
        db.init_db()
        print(f"Database ready at {db.DB_PATH}")
        return

    if args.command == "add-user":
        db.init_db()
        user = db.upsert_user(args.email, **_profile_fields(args))
        print(f"User {user.id}: {user.email}")
        return

    import uvicorn

    uvicorn.run("english_tutor.app:app", host=args.host, port=args.port, reload=args.reload)


if __name__ == "__main__":  # pragma: no cover - CLI entry
    main()
