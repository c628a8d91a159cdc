#!/usr/bin/env python

import os
import shutil
import logging
from contextlib import contextmanager

from mkinitbench.model import BashError, PathError, MalformedValueError

log = logging.getLogger('mkinitbench')

def lines(data):
	"""
	Split process output into lines, skipping leading blank lines
	and surrounding whitespace.
	"""
	result = data.strip().split(b"\n")
	while result and not result[0].strip():
		result.pop(0)
	return result

def resolve_file(path):
	"""
	Resolve path to a file and split it into (directory, filename).
	"""
	try:
		resolved = os.path.realpath(path, strict=True)
	except OSError as e:
		raise PathError("could not resolve: %s (%s)" % (path, e.strerror or e))
	log.debug("resolve_file: %s => %s" % (path, resolved))
	if not os.path.isfile(resolved):
		raise PathError("not a file: %s (resolved from %s)" % (resolved, path))
	directory, filename = os.path.split(resolved)
	if not directory or not filename:
		raise PathError("invalid path: %s (resolved from %s)" % (resolved, path))
	return directory, filename

@contextmanager
def error_context(message):
	try:
		yield
	except BashError as e:
		e.add_context(message)
		raise

def create_dir(directory):
	try:
		os.makedirs(directory)
	except FileExistsError as e:
		log.debug("create_dir: at=%s, error=%s" % (directory, e))
	except OSError as e:
		log.warning("create_dir: at=%s, error=%s" % (directory, e))
		raise

def cleanup(path):
	"""
	Remove a directory tree or a file, if it exists.
	"""
	try:
		if os.path.isdir(path) and not os.path.islink(path):
			log.debug("cleanup: dir=%s, is_dir=true" % path)
			shutil.rmtree(path)
		else:
			log.debug("cleanup: dir=%s, is_dir=false" % path)
			os.remove(path)
	except FileNotFoundError as e:
		log.debug("cleanup: dir=%s, error=%s" % (path, e))
	except OSError as e:
		log.warning("cleanup: dir=%s, error=%s" % (path, e))
		raise

def parse_vars(text, parse_key, parse_value):
	"""
	Parse `NAME=VALUE` lines into a list of (key, value) pairs.

	Blank lines are skipped, each line is split at the first '='.
	"""
	result = []
	for line in text.split("\n"):
		if not line.strip():
			continue
		log.debug("parse_vars: %s" % line)
		name, sep, value = line.partition("=")
		if not sep:
			raise MalformedValueError("missing variable assignment: %s" % line)
		result.append((parse_key(name), parse_value(value)))
	return result
