# =============================================================================
# main.py - CLI entry point
# =============================================================================

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from core.ad_client import ActiveDirectoryClient
from core.directory import DirectoryError
from core.models import PasswordMode
from core.outcome_log import REPORT_FIELDNAMES
from core.provisioner import UserProvisioner
from utils.config import Config
from utils.csv_utils import CSVHandler, load_department_map, load_person_records
from utils.secret_log import EncryptedSecretLog, SecretLogError, decode_key, generate_key


def setup_logging(level: str = "INFO") -> str:
    """Setup logging configuration with both console and file output"""
    log_dir = Path("logs")
    log_dir.mkdir(exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_filename = log_dir / f"ad_provisioning_{timestamp}.log"

    formatter = logging.Formatter(
        fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, level.upper()))
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Always log DEBUG to file
    file_handler = logging.FileHandler(log_filename, encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging initialized - Console: {level.upper()}, File: DEBUG")
    logger.info(f"Log file: {log_filename}")

    return str(log_filename)


def handle_provision(args, config: Config) -> int:
    """Load inputs, connect to AD and run the provisioning loop"""
    logger = logging.getLogger(__name__)

    if not config.validate_ad_config():
        logger.error(f"Missing required environment variables: {config.get_missing_ad_vars()}")
        return 1

    try:
        settings = config.provisioning_settings(
            password_mode=args.password_mode,
            max_records=args.max_records,
            dry_run=args.dry_run,
        )
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    for input_file in (args.people, args.departments):
        if not Path(input_file).exists():
            logger.error(f"Input file not found: {input_file}")
            return 1

    try:
        records = load_person_records(args.people, delimiter=args.delimiter)
        department_map = load_department_map(args.departments, delimiter=args.delimiter)
    except Exception as e:
        logger.error(f"Could not load input data: {e}")
        return 1

    secret_log = None
    if settings.password_mode == PasswordMode.RANDOM:
        secret_log = EncryptedSecretLog.from_config(config.secret_log_path, config.secret_log_key)
        if secret_log is None:
            logger.info("Generated passwords will not be logged (no valid SECRET_LOG_KEY)")

    try:
        with ActiveDirectoryClient(
                config.ad_server, config.ad_username,
                config.ad_password, config.base_dn
        ) as ad_client:
            provisioner = UserProvisioner(ad_client, settings, secret_log)
            run_log = provisioner.process_users(records, department_map)
    except DirectoryError as e:
        logger.error(f"Provisioning aborted: {e.reason}")
        return 1

    if args.report:
        CSVHandler.write_csv(run_log.to_rows(), args.report, REPORT_FIELDNAMES)

    stats = run_log.stats
    logger.info("Provisioning completed")
    logger.info(f"Created={stats.created} Skipped={stats.skipped} "
                f"Errored={stats.errored} Simulated={stats.simulated}")
    return 0


def handle_generate_key(args, config: Config) -> int:
    print(generate_key())
    return 0


def handle_decrypt_secrets(args, config: Config) -> int:
    """Print decrypted entries of the password log"""
    logger = logging.getLogger(__name__)

    key = decode_key(config.secret_log_key)
    if key is None:
        logger.error("SECRET_LOG_KEY is missing or not a base64 encoded 32-byte key")
        return 1

    secret_log = EncryptedSecretLog(args.path or config.secret_log_path, key)
    try:
        entries = secret_log.read_entries()
    except SecretLogError as e:
        logger.error(f"Could not read password log: {e}")
        return 1

    for timestamp, identifier, secret in entries:
        print(f"{timestamp}\t{identifier}\t{secret}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Active Directory bulk account provisioning")
    parser.add_argument('--log-level', default='INFO', choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Logging level')
    subparsers = parser.add_subparsers(dest='command', help='Command')

    provision_parser = subparsers.add_parser('provision', help='Create accounts from input files')
    provision_parser.add_argument('people', help='People file (FirstName, LastName, DepartmentID)')
    provision_parser.add_argument('departments', help='Department map file (DepartmentID, OU)')
    provision_parser.add_argument('--report', help='Output CSV file for the outcome report')
    provision_parser.add_argument('--dry-run', action='store_true',
                                  help='Run every check but do not create accounts')
    provision_parser.add_argument('--max-records', type=int,
                                  help='Maximum records per run (default: MAX_RECORDS or 100)')
    provision_parser.add_argument('--password-mode', choices=['random', 'fixed'],
                                  help='Override PASSWORD_MODE')
    provision_parser.add_argument('--delimiter', default=',', help='CSV delimiter')

    subparsers.add_parser('generate-key', help='Print a new SECRET_LOG_KEY')

    decrypt_parser = subparsers.add_parser('decrypt-secrets', help='Print the decrypted password log')
    decrypt_parser.add_argument('--path', help='Password log file (default: SECRET_LOG_PATH)')

    return parser


COMMANDS = {
    'provision': handle_provision,
    'generate-key': handle_generate_key,
    'decrypt-secrets': handle_decrypt_secrets,
}


def main(argv: Optional[List[str]] = None) -> None:
    """Main CLI entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.command == 'provision':
        setup_logging(args.log_level)
    else:
        logging.basicConfig(level=getattr(logging, args.log_level), stream=sys.stderr)

    config = Config()
    sys.exit(COMMANDS[args.command](args, config))


if __name__ == "__main__":
    main()
