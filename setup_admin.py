"""
Create the admin account used to log in to /api/admin.

    DATABASE_URL=mongodb://localhost:27017 python setup_admin.py --email me@example.com --name "Me"

The password is prompted for when --password is omitted.
"""
import argparse
import getpass
import logging
import sys

import auth
import database

logger = logging.getLogger("setup_admin")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Create the portfolio admin user")
    parser.add_argument("--email", required=True)
    parser.add_argument("--name", default="Admin")
    parser.add_argument("--password")
    args = parser.parse_args(argv)

    if database.db is None:
        logger.error("DATABASE_URL is not set")
        return 1

    password = args.password or getpass.getpass("Admin password: ")
    if not password:
        logger.error("Password must not be empty")
        return 1

    try:
        admin_id = auth.create_admin(args.email, password, args.name)
    except ValueError as e:
        logger.error("%s", e)
        return 1
    logger.info("Admin user created with id %s", admin_id)
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    sys.exit(main())
