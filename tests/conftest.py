import warnings

# Ignore warnings from camstream.shared
warnings.filterwarnings("ignore", category=DeprecationWarning, module="camstream.shared.*")

# Import process fixtures so they are available to all tests
from tests.fixtures.process_fixtures import *  # noqa: E402, F403
