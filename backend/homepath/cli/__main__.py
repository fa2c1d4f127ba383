# backend/homepath/cli/__main__.py
from __future__ import annotations

import argparse

from homepath.cli.seed_demo import seed_demo


def main() -> None:
    p = argparse.ArgumentParser(prog="homepath")
    p.add_argument("--user-email", default="demo@homepath.local")
    p.add_argument("--user-name", default="Demo")
    p.add_argument("--no-sample-property", action="store_true")
    p.add_argument("--token", action="store_true", help="print a bearer token for the demo user")
    args = p.parse_args()

    out = seed_demo(
        user_email=args.user_email,
        user_name=args.user_name,
        create_sample_property=(not args.no_sample_property),
        issue_demo_token=args.token,
    )
    print(
        {
            "ok": True,
            "user_email": out.user_email,
            "user_id": out.user_id,
            "sample_property_id": out.property_id,
            "token": out.token,
        }
    )


if __name__ == "__main__":
    main()
