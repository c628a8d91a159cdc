#!/usr/bin/env python

# Quoting and unquoting of bash values.
# Bash itself (see subproc.ShellOracle) is the only authority on the
# grammar here: values are assigned and printed by a shell process
# and its output is taken as canonical.

import os
import shlex
import logging
import tempfile

from mkinitbench import static
from mkinitbench.model import BashError, MalformedValueError, BashEncodingError
from mkinitbench.helper import resolve_file, error_context, parse_vars
from mkinitbench.subproc import get_oracle

log = logging.getLogger('mkinitbench')

_sentinel = static.sentinel.encode()

INT32_MIN = -2 ** 31
INT32_MAX = 2 ** 31 - 1

def _utf8(text, what):
	try:
		return text.decode('utf-8')
	except UnicodeDecodeError as e:
		raise BashEncodingError("invalid UTF-8 in %s: %s" % (what, e))

def escape(data):
	"""
	Apply bash quoting rules to raw bytes.

	Simple words stay unquoted, spaces and parenthesis usually get
	single quotes and control characters or non-ASCII bytes use $'...'.
	Bash drops NUL bytes on the way.
	"""
	log.debug("escape: input=%r" % data)
	with tempfile.NamedTemporaryFile(prefix='mkinitbench-') as temp:
		temp.write(data)
		temp.flush()
		log.debug("escape: temp file=%s" % temp.name)
		directory, filename = resolve_file(temp.name)
		# the trailing x keeps newlines at the end from being stripped
		script = b"%s=\"$(cat %s; printf x)\"\n%s=\"${%s%%x}\"" % (
			_sentinel, os.fsencode(shlex.quote(filename)), _sentinel, _sentinel)
		output = get_oracle().run_with_output(script, cwd=directory)
	log.debug("escape: output=%r" % output)
	return output

def unescape(text):
	"""
	Evaluate a quoted bash word, the inverse of escape().
	"""
	log.debug("unescape: input=%r" % text)
	# only newlines: %q output like `word\ ` ends in an escaped space
	script = b"INPUT=%s\nprintf '%%s' \"$INPUT\"" % text.strip("\n").encode('utf-8')
	output = get_oracle().run(script)
	log.debug("unescape: output=%r" % output)
	return output

def is_array_source(text):
	"""
	Check if quoted text is a bash array, i.e. enclosed in parenthesis.

	This doesn't parse anything, malformed arrays are left for bash
	to complain about.
	"""
	return len(text) > 0 and text[0] == '(' and text[-1] == ')'


class BashScalar(object):
	"""
	A plain bash string, both quoted (source) and unquoted (raw).

	Comparison and hashing only consider the raw bytes.
	"""

	def __init__(self, escaped, raw):
		self._escaped = escaped
		self._raw = raw

	@classmethod
	def from_escaped(cls, text):
		with error_context("while parsing possibly escaped text: %r" % text):
			raw = unescape(text)
		return cls(text, raw)

	@classmethod
	def from_raw(cls, data):
		if isinstance(data, str):
			data = data.encode('utf-8')
		data = bytes(data)
		with error_context("while escaping raw bytes: %r" % data):
			escaped = escape(data)
		return cls(escaped, data)

	@classmethod
	def from_path(cls, path):
		return cls.from_raw(os.fsencode(path))

	@classmethod
	def parse(cls, text):
		"""Try text as quoted source first, then as raw text."""
		try:
			return cls.from_escaped(text)
		except BashError as e:
			log.debug("parse: falling back to raw text: %s" % e)
			return cls.from_raw(text.encode('utf-8'))

	@property
	def source(self):
		return self._escaped

	@property
	def raw(self):
		return self._raw

	def as_utf8(self):
		try:
			return self._raw.decode('utf-8')
		except UnicodeDecodeError as e:
			raise BashEncodingError("not UTF-8: %r (%s)" % (self._raw, e))

	def to_utf8_lossy(self):
		return self._raw.decode('utf-8', 'replace')

	def as_path(self):
		return os.fsdecode(self._raw)

	def arrayize(self):
		"""
		Split into an array with `read -a`, on the default IFS.
		"""
		script = b"set -f\nINPUT=%s\nread -r -a %s <<< \"$INPUT\"" % (
			self._escaped.encode('utf-8'), _sentinel)
		return BashArray.from_source(get_oracle().run_with_output(script))

	def mapfile(self, delimiter):
		"""
		Split into an array with `mapfile -d`, on a single byte delimiter.
		"""
		if isinstance(delimiter, (bytes, bytearray)):
			if len(delimiter) != 1:
				raise MalformedValueError("delimiter must be a single byte: %r" % delimiter)
			delimiter = delimiter[0]
		script = (
			b"declare -a %s=()\n"
			b"INPUT=%s\n"
			b"mapfile -d $'\\%03o' -t %s 1>&- < <(\n"
			b"\tprintf '%%s' \"$INPUT\"\n"
			b")"
		) % (_sentinel, self._escaped.encode('utf-8'), delimiter, _sentinel)
		return BashArray.from_source(get_oracle().run_with_output(script))

	def reescape(self):
		"""Recreate the quoted form from the raw bytes."""
		return BashScalar.from_raw(self._raw)

	def __eq__(self, other):
		if isinstance(other, BashScalar):
			return self._raw == other._raw
		if isinstance(other, (bytes, bytearray)):
			return self._raw == other
		if isinstance(other, str):
			return self._raw == other.encode('utf-8')
		return NotImplemented

	def __lt__(self, other):
		if isinstance(other, BashScalar):
			return self._raw < other._raw
		return NotImplemented

	def __hash__(self):
		return hash(self._raw)

	def __bytes__(self):
		return self._raw

	def __len__(self):
		return len(self._raw)

	def __str__(self):
		return self.to_utf8_lossy()

	def __repr__(self):
		return "BashScalar(%s)" % self._escaped


def _parse_index(text):
	try:
		index = int(text)
	except ValueError:
		raise BashEncodingError("invalid array index: %r" % text)
	if not INT32_MIN <= index <= INT32_MAX:
		raise BashEncodingError("array index out of range: %d" % index)
	return index

def _parse_indexed(text):
	script = (
		b"declare -a ARR=%s\n"
		b"for KEY in \"${!ARR[@]}\"; do\n"
		b"\tprintf '%%q=%%q\\n' \"$KEY\" \"${ARR[$KEY]}\"\n"
		b"done"
	) % text.encode('utf-8')
	output = _utf8(get_oracle().run(script), "array entries")
	return parse_vars(output, _parse_index, BashScalar.from_escaped)

def _parse_associative(text):
	# keys may contain '=', so keys and values go on separate lines
	script = (
		b"declare -A ARR=%s\n"
		b"for KEY in \"${!ARR[@]}\"; do\n"
		b"\tprintf '%%q\\n%%q\\n' \"$KEY\" \"${ARR[$KEY]}\"\n"
		b"done"
	) % text.encode('utf-8')
	output = _utf8(get_oracle().run(script), "array entries").split("\n")
	if output and output[-1] == "":
		output.pop()
	if len(output) % 2:
		raise MalformedValueError("unpaired associative array entry: %s" % output[-1])
	return [(BashScalar.from_escaped(key), BashScalar.from_escaped(value))
		for key, value in zip(output[::2], output[1::2])]

def _array_source(kind, entries):
	def quoted(scalar):
		return scalar.source or "''"
	keys = [key for key, _ in entries]
	if kind == BashArray.INDEXED and keys == list(range(len(keys))):
		return "(%s)" % " ".join(quoted(value) for _, value in entries)
	if kind == BashArray.INDEXED:
		items = ["[%d]=%s" % (key, quoted(value)) for key, value in entries]
	else:
		items = ["[%s]=%s" % (quoted(key), quoted(value)) for key, value in entries]
	return "(%s)" % " ".join(items)


class BashArray(object):
	"""
	Indexed or associative bash array, as a list of (key, value) pairs.

	Indexed arrays have int keys in bash's order (ascending, with holes),
	associative arrays have BashScalar keys.
	"""

	INDEXED = 'indexed'
	ASSOCIATIVE = 'associative'

	def __init__(self, source, entries, kind=INDEXED):
		self._source = source
		self._entries = tuple(entries)
		self.kind = kind

	@classmethod
	def from_source(cls, text, associative=False):
		"""
		Parse a quoted bash array, usually from `declare` output like
		`([0]="text" ...)`, but plain `(text ...)` works too.
		"""
		stripped = text.strip()
		if not is_array_source(stripped):
			raise MalformedValueError("invalid array source: %s" % text)
		if associative:
			return cls(text, _parse_associative(stripped), cls.ASSOCIATIVE)
		return cls(text, _parse_indexed(stripped), cls.INDEXED)

	@classmethod
	def from_values(cls, values):
		"""Build an indexed array from BashScalar values."""
		entries = list(enumerate(values))
		return cls(_array_source(cls.INDEXED, entries), entries, cls.INDEXED)

	@property
	def source(self):
		return self._source

	@property
	def is_associative(self):
		return self.kind == self.ASSOCIATIVE

	def entries(self):
		return list(self._entries)

	def keys(self):
		return [key for key, _ in self._entries]

	def values(self):
		return [value for _, value in self._entries]

	def _declare_flag(self):
		return b"-A" if self.is_associative else b"-a"

	def to_bash_string(self):
		"""
		Equivalent to `$ARRAY`, which usually is the first element.
		"""
		script = b"declare %s ARRAY=%s\n%s=\"$ARRAY\"" % (
			self._declare_flag(), self._source.strip().encode('utf-8'), _sentinel)
		return BashScalar.from_escaped(get_oracle().run_with_output(script))

	def to_concatenated_string(self):
		"""
		Equivalent to `${ARRAY[*]}`, values joined by spaces.
		"""
		script = b"declare %s ARRAY=%s\n%s=\"${ARRAY[*]}\"" % (
			self._declare_flag(), self._source.strip().encode('utf-8'), _sentinel)
		return BashScalar.from_escaped(get_oracle().run_with_output(script))

	def reescape(self):
		"""
		Recreate the quoted form from the raw keys and values.
		"""
		if self.is_associative:
			entries = [(key.reescape(), value.reescape()) for key, value in self._entries]
		else:
			entries = [(key, value.reescape()) for key, value in self._entries]
		return BashArray(_array_source(self.kind, entries), entries, self.kind)

	def __iter__(self):
		return iter(self.values())

	def __len__(self):
		return len(self._entries)

	def __eq__(self, other):
		if isinstance(other, BashArray):
			if self.kind != other.kind:
				return False
			if self.is_associative:
				return dict(self._entries) == dict(other._entries)
			return self._entries == other._entries
		if isinstance(other, (list, tuple)):
			values = self.values()
			return len(values) == len(other) and all(a == b for a, b in zip(values, other))
		return NotImplemented

	def __hash__(self):
		if self.is_associative:
			return hash(frozenset(self._entries))
		return hash(self._entries)

	def __str__(self):
		return "(%s)" % " ".join(value.source for value in self.values())

	def __repr__(self):
		return "BashArray(%s)" % self._source


class BashValue(object):
	"""
	Value of a bash variable: either a scalar or an array.
	"""

	SCALAR = 'scalar'
	ARRAY = 'array'

	def __init__(self, kind, value):
		self.kind = kind
		self.value = value

	@classmethod
	def from_source(cls, text):
		if is_array_source(text.strip()):
			return cls(cls.ARRAY, BashArray.from_source(text))
		return cls(cls.SCALAR, BashScalar.from_escaped(text))

	@property
	def source(self):
		return self.value.source

	@property
	def is_array(self):
		return self.kind == self.ARRAY

	@property
	def scalar(self):
		return self.value if self.kind == self.SCALAR else None

	@property
	def array(self):
		return self.value if self.kind == self.ARRAY else None

	def __eq__(self, other):
		if isinstance(other, BashValue):
			return self.kind == other.kind and self.value == other.value
		return NotImplemented

	def __hash__(self):
		return hash((self.kind, self.value))

	def __repr__(self):
		return "BashValue(%s, %s)" % (self.kind, self.source)
