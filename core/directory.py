# =============================================================================
# core/directory.py - Directory service interface and in-memory implementation
# =============================================================================

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Set
import logging


class DirectoryError(Exception):
    """Directory read, write or connection failure carrying a readable reason"""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


def account_common_names(display_name: str, identifier: str) -> List[str]:
    """CN values to try in order: the display name, then the display name tagged with the identifier"""
    return [display_name, f"{display_name} ({identifier})"]


class DirectoryService(ABC):
    """Operations the provisioning workflow needs from a directory"""

    @abstractmethod
    def find_by_identifier_or_principal(self, identifier: str,
                                        principal_name: str) -> Optional[Dict[str, Any]]:
        """Return an entry whose sAMAccountName or userPrincipalName matches, else None"""
        pass

    @abstractmethod
    def organizational_unit_exists(self, ou_path: str) -> bool:
        """Check that the OU distinguished name exists"""
        pass

    @abstractmethod
    def create_account(self, identifier: str, principal_name: str, mail: str,
                       display_name: str, ou_path: str, secret: str,
                       force_change_at_next_logon: bool = True,
                       given_name: str = "", surname: str = "") -> None:
        """Create an enabled user account. Raises DirectoryError on failure."""
        pass


class InMemoryDirectory(DirectoryService):
    """
    Deterministic directory that stands in for Active Directory in tests.

    Identifiers and principal names are compared case-insensitively, the way
    Active Directory compares them. Lookups for identifiers listed in
    ``failing_identifiers`` raise DirectoryError, and ``create_failure`` makes
    every create call fail with that reason. Created accounts get the same
    CN fallback as ActiveDirectoryClient and never share a distinguished name.
    """

    def __init__(self, accounts: Optional[List[Dict[str, str]]] = None,
                 organizational_units: Optional[List[str]] = None):
        self.accounts: List[Dict[str, str]] = []
        self.organizational_units: Set[str] = {
            ou.lower() for ou in (organizational_units or [])
        }
        self.failing_identifiers: Set[str] = set()
        self.failing_organizational_units: Set[str] = set()
        self.create_failure: Optional[str] = None
        self.lookup_calls: List[tuple] = []
        self.ou_calls: List[str] = []
        self.create_calls: List[Dict[str, Any]] = []
        self.logger = logging.getLogger(self.__class__.__name__)

        for account in accounts or []:
            self.add_account(account["sAMAccountName"], account.get("userPrincipalName", ""))

    def add_account(self, identifier: str, principal_name: str = "", **attributes: str) -> None:
        entry = {"sAMAccountName": identifier, "userPrincipalName": principal_name}
        entry.update(attributes)
        self.accounts.append(entry)

    def add_organizational_unit(self, ou_path: str) -> None:
        self.organizational_units.add(ou_path.lower())

    def find_by_identifier_or_principal(self, identifier: str,
                                        principal_name: str) -> Optional[Dict[str, Any]]:
        self.lookup_calls.append((identifier, principal_name))

        if identifier.lower() in self.failing_identifiers:
            raise DirectoryError(f"Simulated lookup failure for {identifier}")

        for entry in self.accounts:
            if entry["sAMAccountName"].lower() == identifier.lower():
                return dict(entry)
            if principal_name and entry["userPrincipalName"].lower() == principal_name.lower():
                return dict(entry)
        return None

    def organizational_unit_exists(self, ou_path: str) -> bool:
        self.ou_calls.append(ou_path)

        if ou_path.lower() in self.failing_organizational_units:
            raise DirectoryError(f"Simulated OU lookup failure for {ou_path}")
        return ou_path.lower() in self.organizational_units

    def create_account(self, identifier: str, principal_name: str, mail: str,
                       display_name: str, ou_path: str, secret: str,
                       force_change_at_next_logon: bool = True,
                       given_name: str = "", surname: str = "") -> None:
        call = {
            "identifier": identifier,
            "principal_name": principal_name,
            "mail": mail,
            "display_name": display_name,
            "ou_path": ou_path,
            "secret": secret,
            "force_change_at_next_logon": force_change_at_next_logon,
            "given_name": given_name,
            "surname": surname,
        }
        self.create_calls.append(call)

        if self.create_failure:
            raise DirectoryError(self.create_failure)

        taken = {entry.get("distinguishedName", "").lower() for entry in self.accounts}
        for common_name in account_common_names(display_name, identifier):
            dn = f"CN={common_name},{ou_path}"
            if dn.lower() not in taken:
                break
        else:
            raise DirectoryError(f"Add {dn} rejected: entryAlreadyExists")

        self.add_account(identifier, principal_name, mail=mail, displayName=display_name,
                         distinguishedName=dn)
        self.logger.debug(f"Created in-memory account {identifier} at {dn}")
