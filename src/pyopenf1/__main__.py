from pyopenf1.cli import main

raise SystemExit(main())
