from cellforge.cli import main

raise SystemExit(main())
