# =============================================================================
# core/ad_client.py - Active Directory client
# =============================================================================

import logging
from typing import Dict, Any, Optional
from ldap3 import Server, Connection, ALL, BASE, MODIFY_REPLACE
from ldap3.core.exceptions import LDAPException
from ldap3.utils.conv import escape_filter_chars
from ldap3.utils.dn import escape_rdn

from core.directory import DirectoryService, DirectoryError, account_common_names

# userAccountControl flags
UAC_ACCOUNTDISABLE = 0x2
UAC_NORMAL_ACCOUNT = 0x200

RESULT_NO_SUCH_OBJECT = 32
RESULT_ENTRY_ALREADY_EXISTS = 68


class ActiveDirectoryClient(DirectoryService):
    """Active Directory client for account lookup and creation"""

    USER_OBJECT_CLASSES = ['top', 'person', 'organizationalPerson', 'user']

    def __init__(self, server_url: str, username: str, password: str, base_dn: str):
        self.server_url = server_url
        self.username = username
        self.password = password
        self.base_dn = base_dn
        self.connection: Optional[Connection] = None
        self.logger = logging.getLogger(__name__)

    def __enter__(self):
        """Context manager entry. Raises DirectoryError if AD cannot be reached."""
        if not self.connect():
            raise DirectoryError(f"Could not connect to Active Directory at {self.server_url}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit"""
        self.disconnect()

    def connect(self) -> bool:
        """Establish connection to Active Directory"""
        try:
            server = Server(self.server_url, get_info=ALL)
            self.connection = Connection(
                server,
                user=self.username,
                password=self.password,
                auto_bind=True
            )
            self.logger.info("Successfully connected to Active Directory")
            return True
        except Exception as e:
            self.logger.error(f"Failed to connect to AD: {e}")
            return False

    def disconnect(self) -> None:
        """Close Active Directory connection"""
        if self.connection:
            self.connection.unbind()
            self.connection = None
            self.logger.info("Disconnected from Active Directory")

    def find_by_identifier_or_principal(self, identifier: str,
                                        principal_name: str) -> Optional[Dict[str, Any]]:
        """Find a user whose sAMAccountName or userPrincipalName matches"""
        search_filter = (
            "(&(objectClass=user)"
            f"(|(sAMAccountName={escape_filter_chars(identifier)})"
            f"(userPrincipalName={escape_filter_chars(principal_name)})))"
        )
        connection = self._require_connection()

        try:
            ok = connection.search(
                search_base=self.base_dn,
                search_filter=search_filter,
                attributes=['sAMAccountName', 'userPrincipalName', 'distinguishedName']
            )
        except LDAPException as e:
            raise DirectoryError(f"Search for {identifier} failed: {e}")

        if not ok and connection.result.get('result', 0) != 0:
            raise DirectoryError(
                f"Search for {identifier} failed: {connection.result.get('description', 'unknown error')}"
            )

        if not connection.entries:
            self.logger.debug(f"No account found for {identifier} / {principal_name}")
            return None

        entry = connection.entries[0]
        result = {
            'sAMAccountName': str(entry.sAMAccountName) if entry.sAMAccountName else "",
            'userPrincipalName': str(entry.userPrincipalName) if entry.userPrincipalName else "",
            'distinguishedName': entry.entry_dn,
        }
        self.logger.debug(f"Found existing account {result['sAMAccountName']} for {identifier}")
        return result

    def organizational_unit_exists(self, ou_path: str) -> bool:
        """Base-scope read of the OU distinguished name"""
        connection = self._require_connection()

        try:
            ok = connection.search(
                search_base=ou_path,
                search_filter='(objectClass=*)',
                search_scope=BASE,
                attributes=['distinguishedName']
            )
        except LDAPException as e:
            raise DirectoryError(f"OU lookup for {ou_path} failed: {e}")

        if ok:
            return bool(connection.entries)

        result_code = connection.result.get('result', 0)
        if result_code == RESULT_NO_SUCH_OBJECT:
            return False
        raise DirectoryError(
            f"OU lookup for {ou_path} failed: {connection.result.get('description', 'unknown error')}"
        )

    def create_account(self, identifier: str, principal_name: str, mail: str,
                       display_name: str, ou_path: str, secret: str,
                       force_change_at_next_logon: bool = True,
                       given_name: str = "", surname: str = "") -> None:
        """
        Create a user account.

        The object is added disabled, the password is set through the
        Microsoft unicodePwd extension, then the account is enabled. With
        force_change_at_next_logon, pwdLastSet is reset to 0. When the OU
        already holds an entry with the display name as CN, the add is
        retried as "<display name> (<identifier>)".

        Raises:
            DirectoryError: when any of the steps is rejected
        """
        connection = self._require_connection()

        attributes = {
            'sAMAccountName': identifier,
            'userPrincipalName': principal_name,
            'mail': mail,
            'displayName': display_name,
            'userAccountControl': str(UAC_NORMAL_ACCOUNT | UAC_ACCOUNTDISABLE),
        }
        if given_name:
            attributes['givenName'] = given_name
        if surname:
            attributes['sn'] = surname

        try:
            dn = self._add_user(connection, display_name, identifier, ou_path, attributes)

            if not connection.extend.microsoft.modify_password(dn, secret):
                raise DirectoryError(
                    f"Account {identifier} added disabled, password rejected: {self._describe_result()}"
                )

            changes = {'userAccountControl': [(MODIFY_REPLACE, [str(UAC_NORMAL_ACCOUNT)])]}
            if force_change_at_next_logon:
                changes['pwdLastSet'] = [(MODIFY_REPLACE, ['0'])]

            if not connection.modify(dn, changes):
                raise DirectoryError(
                    f"Account {identifier} added disabled, enable failed: {self._describe_result()}"
                )
        except LDAPException as e:
            raise DirectoryError(f"Creating {identifier} failed: {e}")

        self.logger.info(f"Created account {identifier} at {dn}")

    def _add_user(self, connection: Connection, display_name: str, identifier: str,
                  ou_path: str, attributes: Dict[str, str]) -> str:
        """Add the user object under the first free CN and return its DN"""
        for common_name in account_common_names(display_name, identifier):
            dn = f"CN={escape_rdn(common_name)},{ou_path}"
            if connection.add(dn, self.USER_OBJECT_CLASSES, dict(attributes, cn=common_name)):
                return dn
            if connection.result.get('result') != RESULT_ENTRY_ALREADY_EXISTS:
                break
            self.logger.info(f"{dn} already exists, trying next CN for {identifier}")
        raise DirectoryError(f"Add {dn} rejected: {self._describe_result()}")

    def _require_connection(self) -> Connection:
        if not self.connection:
            raise DirectoryError("Not connected to Active Directory")
        return self.connection

    def _describe_result(self) -> str:
        result = self.connection.result if self.connection else {}
        description = result.get('description', 'unknown error')
        message = result.get('message', '')
        return f"{description} {message}".strip()
