#!/usr/bin/env python

import os
import logging

from yaml import load
try:
	from yaml import CLoader as Loader
except ImportError:
	from yaml import Loader

from mkinitbench import static
from mkinitbench.model import Singleton

log = logging.getLogger('mkinitbench')

defaults = {
	'shell': static.shell,
	'mkinitcpio': static.mkinitcpio_bin,
	'config_file': static.config_file,
	'drop_in_dir': static.drop_in_dir,
	'preset_dir': static.preset_dir,
	'outdir': static.outdir,
	'compressions': static.compressions,
}

@Singleton
class MkinitBenchConfig(object):
	def __init__(self, configfile=None):
		self.configfile = configfile
		self.config = dict(defaults)
		if configfile and os.path.exists(configfile):
			with open(configfile, 'r') as f:
				ctxt = f.read()
			# who said, I couldn't use tabs in yaml?
			ctxt = ctxt.replace("\t", " ")
			self.config.update(load(ctxt, Loader=Loader) or {})
		elif configfile:
			log.debug("Config file '%s' not found, using defaults" % configfile)

	def __getattr__(self, key):
		try:
			return self.config[key]
		except KeyError:
			raise AttributeError(key)

	def __getitem__(self, key):
		return self.config[key]
