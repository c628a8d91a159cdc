#!/usr/bin/env python

import os
import subprocess
import logging

from mkinitbench import static
from mkinitbench.model import ShellError, MalformedValueError, BashEncodingError
from mkinitbench.helper import lines

log = logging.getLogger('mkinitbench')

def _escape(line):
	return line.decode('ascii', 'backslashreplace')

def call(args, cwd='/', input=None):
	"""
	Run a program with an empty environment and wait for it.

	input: bytes written to stdin (stdin is /dev/null otherwise)
	returns (returncode, stdout, stderr)
	"""
	log.debug("call: args=%s, cwd=%s" % (args, cwd))
	stdin = subprocess.DEVNULL if input is None else subprocess.PIPE
	with subprocess.Popen(args, cwd=cwd, env={}, stdin=stdin, stdout=subprocess.PIPE, stderr=subprocess.PIPE) as p:
		try:
			stdout, stderr = p.communicate(input)
		except BaseException:
			log.warning("Interrupted! - killing subprocess %s..." % args[0])
			p.kill()
			p.wait()
			raise
	return p.returncode, stdout, stderr

def check(name, returncode, stdout, stderr, show_stdout=False):
	"""
	Verify the outcome of call().

	Non-zero status raises ShellError, stderr of successful runs
	is only logged.
	"""
	log.debug("%s: exit=%d, #lines stdout=%d, #lines stderr=%d" % (
		name, returncode, len(lines(stdout)), len(lines(stderr))))
	if returncode != 0:
		message = stderr.decode('utf-8', 'replace').strip()
		raise ShellError(name, returncode if returncode >= 0 else None, message or None)
	for line in lines(stderr):
		log.warning("%s: %s" % (name, _escape(line)))
	if show_stdout:
		for line in lines(stdout):
			log.info("%s: %s" % (name, _escape(line)))
	return stdout

def ccall(name, args, cwd='/', show_stdout=False):
	"""
	Same as call(), but raises ShellError on failure and returns stdout.

	ccall("mkinitcpio", ["/usr/bin/mkinitcpio", "--preset", path])
	"""
	returncode, stdout, stderr = call(args, cwd=cwd)
	return check(name, returncode, stdout, stderr, show_stdout=show_stdout)


class ShellOracle(object):
	"""
	Capability for running shell scripts.

	Every quoting and unquoting decision is delegated to an
	implementation of this interface.
	"""

	def run(self, script, cwd='/'):
		"""Run script at cwd and return its stdout."""
		raise NotImplementedError

	def run_with_output(self, script, cwd='/'):
		"""
		Run script at cwd and return the quoted value assigned to
		the sentinel variable, as rendered by `declare`.
		"""
		script = b"%s\ndeclare | grep -E '^%s=' || true" % (script, static.sentinel.encode())
		try:
			environment = self.run(script, cwd).decode('utf-8')
		except UnicodeDecodeError as e:
			raise BashEncodingError("invalid UTF-8 in %s variable: %s" % (static.sentinel, e))

		prefix = "%s=" % static.sentinel
		values = [line[len(prefix):] for line in environment.split("\n") if line.startswith(prefix)]
		if not values:
			raise MalformedValueError("missing %s variable" % static.sentinel)
		if len(values) > 1:
			raise MalformedValueError("multiple %s variables" % static.sentinel)
		return values[0]


class RestrictedBash(ShellOracle):
	"""
	Non-interactive restricted bash (`bash -r`) with a cleared
	environment. Each run spawns a fresh process.
	"""

	def __init__(self, shell=static.shell):
		self.shell = shell

	def run(self, script, cwd='/'):
		log.debug("rbash: dir=%s" % cwd)
		log.debug("rbash: commands=%s" % _escape(script))
		stdin = b"set -o errexit\n%s\nexit\n" % script
		returncode, stdout, stderr = call([self.shell, '-r'], cwd=cwd, input=stdin)
		return check("bash script", returncode, stdout, stderr)

_oracle = None

def get_oracle():
	global _oracle
	if _oracle is None:
		_oracle = RestrictedBash()
	return _oracle

def set_oracle(oracle):
	"""Install oracle as the default, returning the previous one."""
	global _oracle
	previous = _oracle
	_oracle = oracle
	return previous
