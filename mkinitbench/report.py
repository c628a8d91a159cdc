#!/usr/bin/env python

import simplejson as json

from mkinitbench.mkinitcpio import Config, Preset

def convert_value(value):
	if value is None:
		return None
	if hasattr(value, 'values'):
		return [str(item) for item in value.values()]
	return str(value)

def convert_config(config):
	if config is None:
		return None
	return {name: convert_value(getattr(config, attr)) for attr, name, _ in Config.fields}

def convert_preset(preset, config=None):
	data = {
		"filename": str(preset.filename),
		"name": str(preset.name),
	}
	for attr, _, _ in Preset.fields:
		data[attr] = convert_value(getattr(preset, attr))
	data["mkinitcpio.conf"] = convert_config(config)
	return data

def dumps(presets, configs=None):
	"""
	JSON document for presets, configs[i] being the config of presets[i].
	"""
	configs = configs or [None] * len(presets)
	return json.dumps({
		"presets": [convert_preset(p, c) for p, c in zip(presets, configs)],
	}, indent=2)

def print_results(presets, configs=None):
	print(dumps(presets, configs))
