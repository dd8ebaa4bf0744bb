"""
veeamcred.tables
================

Delimited tables of string records, as produced by the SQL client on the target and as persisted to
the loot sink.

Quoting is deliberately disabled: fields are split on the delimiter verbatim. Exported ciphertexts
and recovered plaintexts may contain quote characters and arbitrary bytes, so no quote character can
be trusted to delimit them. The consequence is that a field containing the delimiter itself will
not survive a round trip.
"""


from collections.abc import Mapping


from .exceptions import ColumnNotFoundError, ParseError, verify_type
from .utility import distinct


__author__ = 'Aaron Hosford'
__all__ = [
    'Record',
    'Table',
]


DEFAULT_DELIMITER = ','

# Bytes are decoded with this error handler so that every byte value survives the trip through
# str and back.
BINARY_SAFE_ERRORS = 'surrogateescape'


class Record(Mapping):
    """
    A read-only view of one table row, mapping column names to string values. A column that is
    present in the table but empty in this row maps to None.
    """

    def __init__(self, headers, values):
        self._headers = headers
        self._values = values

    def __getitem__(self, column):
        try:
            index = self._headers.index(column)
        except ValueError:
            raise KeyError(column) from None
        return self._values[index]

    def __iter__(self):
        return iter(self._headers)

    def __len__(self):
        return len(self._headers)

    @property
    def fields(self):
        """The row's values, in column order."""
        return list(self._values)

    def __repr__(self):
        return type(self).__name__ + '(' + repr(dict(self)) + ')'


class Table:
    """
    An ordered collection of rows with named columns.
    """

    @classmethod
    def parse(cls, text, headers=None, delimiter=DEFAULT_DELIMITER):
        """
        Parse delimited text into a table. Carriage returns are removed before parsing, so mixed
        line endings are tolerated, and blank lines are skipped.

        :param text: The text to parse, as a str or bytes instance.
        :param headers: The column names, either as a sequence or as a delimited string. If
            omitted, the first non-blank line of the text is used as the header row.
        :param delimiter: The field delimiter.
        :return: A new Table instance.
        """
        if isinstance(text, (bytes, bytearray)):
            text = bytes(text).decode('utf-8', BINARY_SAFE_ERRORS)
        if not isinstance(text, str):
            raise ParseError("Cannot parse a table from %s." % type(text).__name__)

        lines = [line for line in text.replace('\r', '').split('\n') if line.strip()]

        if headers is None:
            if not lines:
                raise ParseError("No header row found.")
            headers = lines.pop(0).split(delimiter)
        elif isinstance(headers, str):
            headers = headers.split(delimiter)

        headers = [header.strip() for header in headers]
        if not any(headers):
            raise ParseError("The header row is empty.")

        table = cls(headers, delimiter)
        for line in lines:
            table.append_row(line.split(delimiter))
        return table

    def __init__(self, headers, delimiter=DEFAULT_DELIMITER):
        if isinstance(headers, str):
            headers = headers.split(delimiter)
        headers = list(headers)
        for header in headers:
            verify_type(header, str)
        verify_type(delimiter, str, non_empty=True)

        self._headers = headers
        self._delimiter = delimiter
        self._rows = []

    @property
    def headers(self):
        """The column names, in order."""
        return list(self._headers)

    @property
    def delimiter(self):
        """The field delimiter used when serializing."""
        return self._delimiter

    def _column_index(self, name):
        try:
            return self._headers.index(name)
        except ValueError:
            raise ColumnNotFoundError(name) from None

    def append_row(self, values):
        """
        Append a row to the table. Short rows are padded with None and empty strings are stored as
        None. Fields beyond the last column are dropped.

        :param values: A sequence of values in column order, or a mapping from column name to value.
        :return: The Record for the new row.
        """
        if isinstance(values, Mapping):
            for name in values:
                self._column_index(name)
            values = [values.get(header) for header in self._headers]
        else:
            values = list(values)[:len(self._headers)]
            values += [None] * (len(self._headers) - len(values))

        row = []
        for value in values:
            if value is not None and not isinstance(value, str):
                value = str(value)
            row.append(value or None)

        self._rows.append(row)
        return Record(self._headers, row)

    def row_count(self):
        """The number of data rows, not counting the header row."""
        return len(self._rows)

    def __len__(self):
        return len(self._rows)

    def __iter__(self):
        for row in self._rows:
            yield Record(self._headers, row)

    def __getitem__(self, index):
        return Record(self._headers, self._rows[index])

    def column_values(self, name):
        """
        Return the values of a column, in row order.

        :param name: The column name.
        :return: A list of values, with None for empty fields.
        """
        index = self._column_index(name)
        return [row[index] for row in self._rows]

    def unique_values(self, name):
        """
        Return the distinct values of a column, in order of first appearance.

        :param name: The column name.
        :return: A list of distinct values. None counts as a value.
        """
        return distinct(self.column_values(name))

    def unique_count(self, name):
        """
        Return the number of distinct values in a column.

        :param name: The column name.
        :return: The number of distinct values. None counts as a value.
        """
        return len(self.unique_values(name))

    def serialize(self, include_headers=True):
        """
        Render the table as delimited text with newline line endings. Empty values are written as
        empty fields.

        :param include_headers: Whether to write the header row.
        :return: The delimited text.
        """
        lines = []
        if include_headers:
            lines.append(self._delimiter.join(self._headers))
        for row in self._rows:
            lines.append(self._delimiter.join('' if value is None else value for value in row))
        return ''.join(line + '\n' for line in lines)

    def __str__(self):
        return self.serialize()

    def __repr__(self):
        return '<%s: %d columns, %d rows>' % (type(self).__name__, len(self._headers), len(self._rows))
