#!/usr/bin/env python

import os
import copy
import logging
import tempfile

from mkinitbench import static
from mkinitbench import environment
from mkinitbench.bash import BashScalar, BashArray
from mkinitbench.model import MalformedValueError, PathError
from mkinitbench.helper import create_dir, cleanup
from mkinitbench.subproc import ccall

log = logging.getLogger('mkinitbench')

def _save(path, content):
	directory = os.path.dirname(path)
	if directory:
		create_dir(directory)
	with open(path, 'w', encoding='utf-8') as f:
		f.write(content)


class Config(object):
	"""
	Parsed configuration file for mkinitcpio.

	A field is None when its variable was not set, which is not the
	same as an empty array.
	"""

	# (attribute, variable, is array) in output order
	fields = [
		('modules', 'MODULES', True),
		('binaries', 'BINARIES', True),
		('files', 'FILES', True),
		('hooks', 'HOOKS', True),
		('compression', 'COMPRESSION', False),
		('compression_options', 'COMPRESSION_OPTIONS', True),
		('module_decompress', 'MODULES_DECOMPRESS', False),
	]

	def __init__(self, **values):
		for attr, _, _ in self.fields:
			setattr(self, attr, values.pop(attr, None))
		if values:
			raise TypeError("unknown config fields: %s" % ", ".join(sorted(values)))

	@staticmethod
	def _as_string(value):
		if value.is_array:
			return value.array.to_concatenated_string().reescape()
		return value.scalar.reescape()

	@staticmethod
	def _as_array(value):
		if value.is_array:
			return value.array.reescape()
		return value.scalar.arrayize().reescape()

	@classmethod
	def load_config(cls, path):
		"""
		Load the configuration at path. Unknown variables are ignored.
		"""
		log.debug("Loading mkinitcpio config '%s'" % path)
		env = environment.source(path)
		values = {}
		for attr, name, is_array in cls.fields:
			value = env.pop(name, None)
			if value is not None:
				values[attr] = cls._as_array(value) if is_array else cls._as_string(value)
		return cls(**values)

	@classmethod
	def load_default(cls, config_file=static.config_file, drop_in_dir=static.drop_in_dir):
		"""
		Load config_file with every *.conf drop-in appended, the way
		mkinitcpio does it.
		"""
		with tempfile.NamedTemporaryFile(prefix='mkinitbench-', suffix='.conf') as output:
			def append(path):
				log.debug("Appending config '%s'" % path)
				with open(path, 'rb') as f:
					output.write(f.read())
				output.write(b"\n")

			append(config_file)
			try:
				drop_ins = os.listdir(drop_in_dir)
			except OSError as e:
				log.debug("No drop-ins at '%s': %s" % (drop_in_dir, e))
				drop_ins = []
			for item in drop_ins:
				if item.endswith('.conf'):
					append(os.path.join(drop_in_dir, item))
			output.flush()
			return cls.load_config(output.name)

	def replace(self, **values):
		"""Copy of this config with some fields replaced."""
		result = copy.copy(self)
		for attr, value in values.items():
			if not hasattr(result, attr):
				raise TypeError("unknown config field: %s" % attr)
			setattr(result, attr, value)
		return result

	def to_source(self):
		result = ""
		for attr, name, _ in self.fields:
			value = getattr(self, attr)
			if value is not None:
				result += "%s=%s\n" % (name, value.source)
		return result

	def save_to(self, path):
		log.debug("Saving mkinitcpio config '%s'" % path)
		_save(path, self.to_source())

	def _values(self):
		return tuple(getattr(self, attr) for attr, _, _ in self.fields)

	def __eq__(self, other):
		if isinstance(other, Config):
			return self._values() == other._values()
		return NotImplemented

	def __hash__(self):
		return hash(self._values())

	def __str__(self):
		return self.to_source()

	def __repr__(self):
		return "Config(%s)" % ", ".join(
			"%s=%r" % (attr, getattr(self, attr)) for attr, _, _ in self.fields)


class Preset(object):
	"""
	A single entry of PRESETS in a mkinitcpio preset file.
	"""

	# (attribute, is array, falls back to ALL_<attribute>) in output order
	fields = [
		('kver', False, True),
		('config', False, True),
		('image', False, False),
		('uki', False, False),
		('efi_image', False, False),
		('microcode', False, True),
		('options', True, False),
	]

	def __init__(self, filename, name, **values):
		self.filename = filename
		self.name = name
		for attr, _, _ in self.fields:
			setattr(self, attr, values.pop(attr, None))
		if values:
			raise TypeError("unknown preset fields: %s" % ", ".join(sorted(values)))

	@staticmethod
	def _as_string(value):
		if value.is_array:
			return value.array.to_concatenated_string()
		return value.scalar.reescape()

	@staticmethod
	def _as_array(value):
		if value.is_array:
			return value.array.reescape()
		return value.scalar.mapfile(b' ').reescape()

	@classmethod
	def _parse_preset(cls, filename, env, name):
		values = {}
		for attr, is_array, fallback in cls.fields:
			value = env.get(b"%s_%s" % (name.raw, attr.encode()))
			if value is None and fallback:
				value = env.get(b"ALL_%s" % attr.encode())
			if value is not None:
				values[attr] = cls._as_array(value) if is_array else cls._as_string(value)
		return cls(filename, name, **values)

	@classmethod
	def load_preset(cls, path):
		"""
		Parse every preset listed in PRESETS of a preset file.
		"""
		stem = os.path.splitext(os.path.basename(path))[0]
		if not stem:
			raise PathError("missing filename for preset: %s" % path)
		log.debug("Loading mkinitcpio preset '%s'" % path)
		filename = BashScalar.from_path(stem)

		env = environment.source(path)
		presets = env.get('PRESETS')
		if presets is None:
			raise MalformedValueError("missing PRESETS array")
		if presets.is_array:
			names = presets.array.reescape().values()
		else:
			names = [presets.scalar.reescape()]
		return [cls._parse_preset(filename, env, name) for name in names]

	@classmethod
	def load_all_presets(cls, directory):
		"""
		Load all *.preset files in directory (not recursive).
		"""
		presets = []
		for item in os.listdir(directory):
			if os.path.splitext(item)[1] == '.preset':
				presets.extend(cls.load_preset(os.path.join(directory, item)))
		return presets

	@classmethod
	def load_default_presets(cls, directory=static.preset_dir):
		return cls.load_all_presets(directory)

	def load_config(self):
		"""The config this preset points to, if any."""
		if self.config is None:
			return None
		return Config.load_config(self.config.as_path())

	def replace(self, **values):
		"""Copy of this preset with some fields replaced."""
		result = copy.copy(self)
		for attr, value in values.items():
			if not hasattr(result, attr):
				raise TypeError("unknown preset field: %s" % attr)
			setattr(result, attr, value)
		return result

	def to_source(self):
		result = "PRESETS=(%s)\n" % self.name.source
		for attr, _, _ in self.fields:
			value = getattr(self, attr)
			if value is not None:
				result += "%s_%s=%s\n" % (self.name.source, attr, value.source)
		return result

	def save_to(self, path):
		log.debug("Saving mkinitcpio preset '%s'" % path)
		_save(path, self.to_source())

	def _values(self):
		return (self.filename, self.name) + tuple(getattr(self, attr) for attr, _, _ in self.fields)

	def __eq__(self, other):
		if isinstance(other, Preset):
			return self._values() == other._values()
		return NotImplemented

	def __hash__(self):
		return hash(self._values())

	def __str__(self):
		return self.to_source()

	def __repr__(self):
		return "Preset(%s/%s)" % (self.filename, self.name)


def create_mock_preset(preset, output_dir, default_config=None, compression='cat', compression_options=None):
	"""
	Write a copy of preset (and its config) that builds into output_dir.

	The mock lives in <output_dir>/<preset file>/<preset name>/ and uses
	`compression`. default_config is used for presets without their own
	config, the system config is loaded if it is None too.
	Returns the path to the new preset file.
	"""
	preset_dir = static.mock_dir(os.path.abspath(output_dir), preset.filename.raw, preset.name.raw)
	log.debug("create_mock_preset: preset=%s, output_dir=%s" % (preset.name, preset_dir))
	cleanup(preset_dir)
	create_dir(preset_dir)

	config = preset.load_config()
	if config is None:
		config = default_config if default_config is not None else Config.load_default()

	if compression_options is not None and not isinstance(compression_options, BashArray):
		compression_options = BashArray.from_values(
			[BashScalar.from_raw(option) for option in compression_options])
	config = config.replace(
		compression=BashScalar.from_raw(compression),
		compression_options=compression_options,
	)
	config_file = static.mock_config(preset_dir)
	config.save_to(config_file)

	mock = preset.replace(
		config=BashScalar.from_path(config_file),
		image=BashScalar.from_path(static.mock_image(preset_dir)),
		uki=BashScalar.from_path(static.mock_uki(preset_dir)),
		efi_image=None,
	)
	preset_file = static.mock_preset(preset_dir, preset.filename.raw)
	mock.save_to(preset_file)
	return preset_file

def mkinitcpio(preset_file, binary=static.mkinitcpio_bin):
	"""
	Run mkinitcpio on a preset file, logging its output.
	"""
	log.info("Running mkinitcpio for '%s'" % preset_file)
	ccall("mkinitcpio", [binary, '--preset', preset_file], show_stdout=True)
