import sys

from dicom2suv.cli import main

sys.exit(main())
