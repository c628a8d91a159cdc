#!/usr/bin/env python

import os
import shlex
import logging

from mkinitbench.model import BashEncodingError
from mkinitbench.helper import resolve_file, parse_vars
from mkinitbench.subproc import get_oracle
from mkinitbench.bash import BashScalar, BashValue

log = logging.getLogger('mkinitbench')

class Environment(dict):
	"""
	Bash variables by name, as {BashScalar: BashValue}.

	Names may also be looked up as str or bytes.
	"""

	@staticmethod
	def _name(name):
		return name.encode('utf-8') if isinstance(name, str) else name

	def __getitem__(self, name):
		return super().__getitem__(self._name(name))

	def __contains__(self, name):
		return super().__contains__(self._name(name))

	def get(self, name, default=None):
		return super().get(self._name(name), default)

	def pop(self, name, *default):
		return super().pop(self._name(name), *default)

def parse_environment(output):
	"""
	Parse `declare` output, classifying each value as scalar or array.
	Repeated names keep the last value.
	"""
	try:
		text = output.decode('utf-8')
	except UnicodeDecodeError as e:
		raise BashEncodingError("invalid UTF-8 in variable listing: %s" % e)
	return Environment(parse_vars(text, BashScalar.from_escaped, BashValue.from_source))

def source(path):
	"""
	Source a bash file and capture all variables afterwards.

	Doesn't tell apart variables set by the file from the ones bash
	defines on its own.
	"""
	directory, filename = resolve_file(path)
	log.debug("source: %s" % os.path.join(directory, filename))
	script = b"source %s 1>&-\ndeclare" % os.fsencode(shlex.quote(filename))
	return parse_environment(get_oracle().run(script, cwd=directory))

def declare(script, cwd='/'):
	"""
	Run a bash script and capture all variables afterwards.
	"""
	if isinstance(script, str):
		script = script.encode('utf-8')
	script = b"{\n%s\n:\n} 1>&-\ndeclare" % script
	return parse_environment(get_oracle().run(script, cwd=cwd))
