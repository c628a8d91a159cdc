#!/usr/bin/env python

class Singleton(object):
	def __init__(self, cls):
		self.cls = cls
		self.instance = None
	def __call__(self, *args, **kwargs):
		if self.instance is None:
			self.instance = self.cls(*args, **kwargs)
		return self.instance
	def reset(self):
		self.instance = None

class FatalError(Exception):
	pass

class BashError(Exception):
	def add_context(self, message):
		self.args = ("%s: %s" % (message, self),) + self.args[1:]

class ShellError(BashError):
	"""
	A subprocess exited with non-zero status.

	returncode is None when the process was killed by a signal,
	stderr is None when nothing (but whitespace) was written to it.
	"""
	def __init__(self, name, returncode=None, stderr=None):
		if returncode is not None and stderr:
			message = "%s failed (status = %d): %s" % (name, returncode, stderr)
		elif returncode is not None:
			message = "%s failed (status = %d)" % (name, returncode)
		elif stderr:
			message = "%s failed: %s" % (name, stderr)
		else:
			message = "%s failed" % name
		super().__init__(message)
		self.name = name
		self.returncode = returncode
		self.stderr = stderr

class MalformedValueError(BashError):
	pass

class BashEncodingError(BashError):
	pass

class PathError(BashError):
	pass
