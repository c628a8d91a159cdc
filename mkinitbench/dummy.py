#!/usr/bin/env python

from mkinitbench.model import ShellError
from mkinitbench.subproc import ShellOracle

class ReplayOracle(ShellOracle):
	"""
	Shell oracle replaying canned stdout instead of spawning bash.

	rules: list of (needle, stdout); the first rule whose needle is part
	of the script answers it. stdout may also be an exception to raise.
	"""

	def __init__(self, rules):
		self.rules = list(rules)
		self.scripts = []

	def run(self, script, cwd='/'):
		self.scripts.append((script, cwd))
		for needle, stdout in self.rules:
			if needle in script:
				if isinstance(stdout, BaseException):
					raise stdout
				return stdout
		raise ShellError("bash script", 127, "no replay for script: %r" % script)
