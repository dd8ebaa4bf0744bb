"""
veeamcred.processing
====================

Decryption of an exported credential table, row by row, into a result table and a tally of what
happened to every row.

Every row ends in exactly one of four states. A row without an ID has no identity to attach a
secret to and is counted as failed. A row without a password, or whose password decrypts to
nothing, is counted as blank and withheld. A row whose password could not be decrypted is counted as
failed. Every other row is decrypted and appears in the result table, tagged with the strategy that
recovered it.
"""


import enum
import logging


from .exceptions import NoTargetError, verify_type
from .security.decryption import SecretDecryptor, Strategy
from .strings import strip_nulls
from .tables import Table
from .targets import Product


__author__ = 'Aaron Hosford'
__all__ = [
    'RowState',
    'Outcome',
    'process_rows',
]


log = logging.getLogger(__name__)


class RowState(enum.Enum):
    """The final state of a row after processing."""

    MISSING_ID = 'skipped-missing-id'
    BLANK = 'skipped-blank-password'
    DECRYPTED = 'decrypted'
    FAILED = 'failed'


class Outcome:
    """
    The aggregate outcome of processing a table. Outcomes are built once, by process_rows(), and
    not modified afterward.
    """

    def __init__(self, product, states, decrypted, result, plaintext=0):
        verify_type(product, Product)
        verify_type(result, Table)
        verify_type(plaintext, int)

        self._product = product
        self._states = tuple(states)
        for state in self._states:
            verify_type(state, RowState)
        self._decrypted = {strategy: int(decrypted.get(strategy, 0)) for strategy in Strategy}
        self._result = result
        # No strategy currently yields secrets that were stored in the clear, so this stays at
        # zero. It's carried so reports keep the same shape if one ever does.
        self._plaintext = plaintext

    @property
    def product(self):
        return self._product

    @property
    def states(self):
        """The final state of each input row, in row order."""
        return self._states

    @property
    def processed(self):
        """The number of input rows considered."""
        return len(self._states)

    @property
    def blank(self):
        return sum(1 for state in self._states if state is RowState.BLANK)

    @property
    def failed(self):
        """The number of rows that were missing an ID or failed to decrypt."""
        return sum(1 for state in self._states if state in (RowState.MISSING_ID, RowState.FAILED))

    @property
    def missing_id(self):
        return sum(1 for state in self._states if state is RowState.MISSING_ID)

    @property
    def decrypted(self):
        """The number of rows decrypted, across all strategies."""
        return sum(self._decrypted.values())

    def decrypted_by(self, strategy):
        """
        Return the number of rows decrypted with a given strategy.

        :param strategy: A veeamcred.security.decryption.Strategy.
        :return: The number of rows.
        """
        verify_type(strategy, Strategy)
        return self._decrypted[strategy]

    @property
    def plaintext(self):
        return self._plaintext

    @property
    def recovered(self):
        return self.decrypted + self._plaintext

    @property
    def result(self):
        """The result table. Callers must treat it as read-only."""
        return self._result

    @property
    def total_result_rows(self):
        return self._result.row_count()

    @property
    def total_result_secrets(self):
        """The number of distinct IDs among the result rows."""
        if not self._result.row_count():
            return 0
        return self._result.unique_count('ID')

    @property
    def succeeded(self):
        return self.processed != self.failed and self.total_result_rows > 0

    def verify(self):
        """
        Raise a NoTargetError if nothing was recovered. Partial failure is only logged.

        :return: The outcome itself.
        """
        name = self._product.short_name
        if not self.succeeded:
            raise NoTargetError("No rows could be processed")
        if self.failed:
            log.warning("%s %s rows processed (%s rows failed)", self.processed, name, self.failed)
        else:
            log.info("%s %s rows processed", self.processed, name)
        log.info("%s rows recovered: %s plaintext, %s decrypted (%s blank)",
                 self.recovered, self._plaintext, self.decrypted, self.blank)
        log.info("%s rows written (%s blank rows withheld)", self.total_result_rows, self.blank)
        log.info("%s unique %s ID records recovered", self.total_result_secrets, name)
        return self

    def __repr__(self):
        return '<%s: %s processed, %s blank, %s decrypted, %s failed>' % (
            type(self).__name__, self.processed, self.blank, self.decrypted, self.failed)


def process_rows(table, decryptor, product):
    """
    Decrypt every row of an exported credential table.

    :param table: The export, a veeamcred.tables.Table with at least the ID and Password columns.
    :param decryptor: The veeamcred.security.decryption.SecretDecryptor for the product.
    :param product: The veeamcred.targets.Product the export came from.
    :return: An Outcome.
    """
    verify_type(table, Table)
    verify_type(decryptor, SecretDecryptor)
    verify_type(product, Product)

    log.info("Process %s DB ...", product.display_name)

    rows = list(table)
    ciphertexts = [row.get('Password') if row.get('ID') else None for row in rows]
    results = decryptor.decrypt_many(ciphertexts)

    disposition = decryptor.strategy.disposition
    result = Table(product.result_headers, table.delimiter)
    states = []
    decrypted = {}

    for number, (row, outcome) in enumerate(zip(rows, results), start=1):
        credential_id = row.get('ID')
        username = row.get('Username')
        if not credential_id:
            log.error("Row %s missing ID column, skipping", number)
            states.append(RowState.MISSING_ID)
            continue

        if not row.get('Password'):
            log.debug("ID %s Password column nil, excluding", credential_id)
            states.append(RowState.BLANK)
            continue

        if outcome.is_error:
            log.error("ID %s username %r failed to decrypt: %s", credential_id, username, outcome.error)
            states.append(RowState.FAILED)
            continue

        if outcome.is_empty:
            log.debug("ID %s username %r decrypted Password nil, excluding", credential_id, username)
            states.append(RowState.BLANK)
            continue

        values = {
            'ID': credential_id,
            'USN': row.get('USN'),
            'Username': username,
            'Plaintext': strip_nulls(outcome.plaintext),
            'Description': row.get('Description'),
            'Visible': row.get('Visible'),
        }
        if 'Method' in product.result_headers:
            values['Method'] = disposition
        result.append_row(values)

        states.append(RowState.DECRYPTED)
        decrypted[decryptor.strategy] = decrypted.get(decryptor.strategy, 0) + 1
        log.debug("ID %s username %r password recovered: %s", credential_id, username, disposition)

    return Outcome(product, states, decrypted, result)
