#!/usr/bin/env python

from setuptools import setup

setup(
	name='mkinitbench',
	version='0.1.0',
	license='AGPL-3.0-or-later',
	description='Benchmark mkinitcpio compression methods on mock presets',
	install_requires=['PyYAML', 'simplejson'],
	extras_require={'test': ['pytest']},
	packages=['mkinitbench'],
	scripts=['bin/mkinitbench'],
	data_files=[
		('share/mkinitbench', ['templates/mkinitbench.yml']),
	],
)
