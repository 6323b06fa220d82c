"""Validate the SMTP settings and optionally send a test message."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from dotenv import load_dotenv

load_dotenv()

from taskbill.services.email_service import EmailSendError, EmailService, EmailServiceConfig  # noqa: E402


logger = logging.getLogger("taskbill.scripts.check_smtp")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Check SMTP configuration for invoice email")
    parser.add_argument(
        "--connect",
        action="store_true",
        help="Open an SMTP session and log in without sending",
    )
    parser.add_argument(
        "--send-to",
        default=None,
        help="Send a short test message to this address",
    )
    return parser.parse_args(argv)


async def run_checks(config: EmailServiceConfig, connect: bool, send_to: str | None) -> int:
    errors = config.validate()
    if errors:
        for error in errors:
            print(f"  - {error}", file=sys.stderr)
        print("SMTP configuration is incomplete; invoices will be marked sent without email.")
        return 1
    print(f"SMTP configured for {config.smtp_hostname}:{config.smtp_port} as {config.from_email}")

    service = EmailService(config)
    if connect:
        result = await service.test_connection()
        if not result["success"]:
            print(result["error"], file=sys.stderr)
            return 1
        print(result["message"])

    if send_to:
        try:
            await service.send_email(
                to_email=send_to,
                subject="Taskbill SMTP test",
                html_content="<p>SMTP settings are working.</p>",
                text_content="SMTP settings are working.",
            )
        except EmailSendError as e:
            print(f"Failed to send test email: {e}", file=sys.stderr)
            return 1
        print(f"Test email sent to {send_to}")
    return 0


def main(argv: list[str] | None = None) -> int:
    if not logging.getLogger().handlers:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    args = parse_args(argv)
    return asyncio.run(run_checks(EmailServiceConfig(), connect=args.connect, send_to=args.send_to))


if __name__ == "__main__":  # pragma: no cover - manual execution path
    sys.exit(main())
