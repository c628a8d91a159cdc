#!/usr/bin/env python

import os

shell = '/usr/bin/bash'
mkinitcpio_bin = '/usr/bin/mkinitcpio'

config_file = '/etc/mkinitcpio.conf'
drop_in_dir = '/etc/mkinitcpio.conf.d'
preset_dir = '/etc/mkinitcpio.d'

outdir = 'output'
compressions = ['cat']

# variable used to extract a single value from a script
sentinel = 'OUTPUT'

def mock_dir(outdir, filename, name):
	return os.path.join(outdir, os.fsdecode(filename), os.fsdecode(name))

def mock_config(mock_dir):
	return os.path.join(mock_dir, 'mkinitcpio.conf')

def mock_preset(mock_dir, filename):
	return os.path.join(mock_dir, '%s.preset' % os.fsdecode(filename))

def mock_image(mock_dir):
	return os.path.join(mock_dir, 'test.img')

def mock_uki(mock_dir):
	return os.path.join(mock_dir, 'test.efi')
