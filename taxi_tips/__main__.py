import sys

from taxi_tips.pipeline import main

sys.exit(main())
