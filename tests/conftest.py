import os
import pytest

from mkinitbench import static
from mkinitbench.dummy import ReplayOracle
from mkinitbench.subproc import RestrictedBash, set_oracle

requires_bash = pytest.mark.skipif(not os.path.exists(static.shell), reason="%s not available" % static.shell)

@pytest.fixture(autouse=True)
def oracle():
	oracle = RestrictedBash()
	previous = set_oracle(oracle)
	yield oracle
	set_oracle(previous)

@pytest.fixture
def replay():
	def install(rules):
		oracle = ReplayOracle(rules)
		set_oracle(oracle)
		return oracle
	return install
