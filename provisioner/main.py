"""
Command line entry point.

Usage:
    # Create the DRAGON database described by the DEFAULT profile of dragon.config
    provisioner

    # Create another database from another profile, then load collections
    provisioner -db MYDB --profile ASHBURN --load

    # Load collections into the database of the local configuration
    provisioner -db MYDB --load

    # Destroy the database of the local configuration
    provisioner -db MYDB --destroy

    # Print a commented configuration file
    provisioner --config-template
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

import oci
from dotenv import load_dotenv

from provisioner import __version__
from provisioner.core.config import ProvisioningConfig, settings
from provisioner.core.exceptions import (
    CloudAuthenticationError,
    ConfigurationFileNotFoundError,
    ConfigurationProfileNotFoundError,
    ProvisionerError,
)
from provisioner.core.logging import configure_logging, get_logger
from provisioner.core.oci_client import CloudClients
from provisioner.core.platform import detect_runtime_environment
from provisioner.core.progress import ConsoleProgressReporter, Section, reported_step
from provisioner.models.database import Operation
from provisioner.services.checkpoint_store import CheckpointStore
from provisioner.services.provisioning_service import ProvisioningResult
from provisioner.services.session import ProvisioningSession, resolve_operation

logger = get_logger(__name__)

CONFIG_TEMPLATE = """\
Configuration template (save the content in a file named "{filename}"):


 # DEFAULT profile (case sensitive), you can define others: ASHBURN_REGION or TEST_ENVIRONMENT
 # You can choose a profile using the -profile command line argument
[DEFAULT]

 # OCID of the user connecting to Oracle Cloud Infrastructure APIs. To get the value, see:
 # https://docs.cloud.oracle.com/en-us/iaas/Content/API/Concepts/apisigningkey.htm#five
user=ocid1.user.oc1..<unique_ID>

 # Full path and filename of the SSH private key (use *solely* forward slashes).
 # /!\\ Warning: The key pair must be in PEM format. For instructions on generating a key pair in PEM format, see:
 # https://docs.cloud.oracle.com/en-us/iaas/Content/API/Concepts/apisigningkey.htm#Required_Keys_and_OCIDs
key_file=<full path to SSH private key file>

 # Fingerprint for the SSH *public* key that was added to the user mentioned above. To get the value, see:
 # https://docs.cloud.oracle.com/en-us/iaas/Content/API/Concepts/apisigningkey.htm#four
fingerprint=<fingerprint associated with the corresponding SSH *public* key>

 # OCID of your tenancy. To get the value, see:
 # https://docs.cloud.oracle.com/en-us/iaas/Content/API/Concepts/apisigningkey.htm#five
tenancy=ocid1.tenancy.oc1..<unique_ID>

 # An Oracle Cloud Infrastructure region identifier. For a list of possible region identifiers, check here:
 # https://docs.cloud.oracle.com/en-us/iaas/Content/General/Concepts/regions.htm#top
region=eu-frankfurt-1

 # OCID of the compartment to use for resources creation. to get more information about compartments, see:
 # https://docs.cloud.oracle.com/en-us/iaas/Content/Identity/Tasks/managingcompartments.htm?Highlight=compartment%20ocid#Managing_Compartments
compartment_id=ocid1.compartment.oc1..<unique_ID>

 # Authentication token that will be used for OCI Object Storage configuration, see:
 # https://docs.cloud.oracle.com/en-us/iaas/Content/Registry/Tasks/registrygettingauthtoken.htm?Highlight=user%20auth%20tokens
auth_token=<authentication token>

 # Autonomous Database Type: ajd (for Autonomous JSON Database), atp (for Autonomous Transaction Processing), adw (for Autonomous Data Warehouse)
 # Empty value means Always Free Autonomous Transaction Processing.
# database_type=

 # Uncomment to specify another database user name than dragon (default)
# database_user_name=<your database user name>

 # The database password used for database creation and dragon user
 # - 12 chars minimum and 30 chars maximum
 # - can't contain the "dragon" word
 # - contains 1 digit minimum
 # - contains 1 lower case char
 # - contains 1 upper case char
database_password=<database password>

 # Uncomment to ask for Bring Your Own Licenses model (doesn't work for Always Free and AJD)
# database_license_type=byol

 # A list of coma separated JSON collection name(s) that you wish to get right after database creation
# database_collections=

 # Path to a folder where data to load into collections can be found (default to current directory)
data_path=.
"""


def configuration_template(filename: Optional[str] = None) -> str:
    return CONFIG_TEMPLATE.format(filename=filename or settings.CONFIG_FILENAME)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="provisioner",
        description="Provision an Oracle Autonomous Database with its storage and data",
    )
    parser.add_argument(
        "-db", "--db",
        dest="db_name",
        type=str.upper,
        default=settings.DEFAULT_DATABASE_NAME,
        help=f"Database name to create (default: {settings.DEFAULT_DATABASE_NAME})",
    )
    parser.add_argument(
        "-p", "-profile", "--profile",
        dest="profile",
        type=str.upper,
        default=settings.DEFAULT_PROFILE,
        help=f"Profile of {settings.CONFIG_FILENAME} to use (default: {settings.DEFAULT_PROFILE})",
    )
    parser.add_argument(
        "-destroy", "--destroy",
        action="store_true",
        help="Destroy the database",
    )
    parser.add_argument(
        "-load", "--load",
        action="store_true",
        help="Load data files into collections",
    )
    parser.add_argument(
        "-info", "--info",
        action="store_true",
        help="Display profile, region, tenancy, compartment and user",
    )
    parser.add_argument(
        "-config-template", "--config-template",
        action="store_true",
        help="Display a configuration file template",
    )
    return parser


def load_provisioning_config(
    profile: str,
    load_requested: bool,
    filename: Optional[str] = None,
) -> ProvisioningConfig:
    """Read one profile of the OCI configuration file and validate it."""
    filename = filename or settings.CONFIG_FILENAME
    try:
        values = oci.config.from_file(file_location=filename, profile_name=profile)
    except oci.exceptions.ConfigFileNotFound as e:
        raise ConfigurationFileNotFoundError(filename) from e
    except oci.exceptions.ProfileNotFound as e:
        raise ConfigurationProfileNotFoundError(profile) from e
    except oci.exceptions.InvalidKeyFilePath as e:
        raise CloudAuthenticationError(None, str(e)) from e

    return ProvisioningConfig.from_mapping(
        values,
        load_requested=load_requested,
        default_user_name=settings.DEFAULT_DATABASE_USER,
    )


def print_connection_details(reporter: ConsoleProgressReporter, result: ProvisioningResult) -> None:
    reporter.println("You can connect to your database using SQL Developer Web:")
    reporter.println(f"- URL  : {result.sign_in_url}")
    reporter.println(f"- login: {result.login}")


def run(args: argparse.Namespace, reporter: ConsoleProgressReporter) -> int:
    store = CheckpointStore(Path(settings.CHECKPOINT_FILENAME))
    checkpoint = None
    if store.exists():
        with reported_step(reporter, Section.LOCAL_CONFIGURATION):
            reporter.update(Section.LOCAL_CONFIGURATION, "parsing")
            checkpoint = store.load()
            reporter.ok(Section.LOCAL_CONFIGURATION)

    operation = resolve_operation(args.destroy, args.load, checkpoint)

    with reported_step(reporter, Section.OCI_CONFIGURATION):
        reporter.update(Section.OCI_CONFIGURATION, "parsing")
        config = load_provisioning_config(args.profile, args.load)
        reporter.ok(Section.OCI_CONFIGURATION)

    session = ProvisioningSession(
        config,
        CloudClients(config.oci_config),
        reporter,
        store,
        args.db_name,
        args.profile,
    )
    if args.info:
        for line in session.information_lines():
            reporter.println(line)

    outcome = session.run(operation, checkpoint, load=args.load)

    if outcome.executed and outcome.operation == Operation.CREATE_DATABASE:
        print_connection_details(reporter, outcome.result)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    load_dotenv()
    configure_logging()

    environment = detect_runtime_environment()
    reporter = ConsoleProgressReporter(colors_enabled=environment.colors_enabled)
    reporter.banner(f"DRAGON Stack manager v{__version__}")

    try:
        environment.ensure_supported()

        reporter.update(Section.COMMAND_LINE, "analyzing")
        args = build_parser().parse_args(argv)
        reporter.ok(Section.COMMAND_LINE)

        if args.config_template:
            reporter.println(configuration_template())
            return 0

        return run(args, reporter)
    except ProvisionerError as e:
        logger.error(
            "Provisioning failed",
            error_code=e.error_code,
            kind=e.kind.value,
            details=e.details,
        )
        reporter.println(f"Error: {e.message}")
        return 1
    except oci.exceptions.ServiceError as e:
        logger.error(
            "OCI request failed",
            status=e.status,
            code=e.code,
        )
        reporter.println(f"Error: OCI request failed ({e.status} {e.code}): {e.message}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
