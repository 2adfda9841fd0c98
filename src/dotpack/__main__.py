from dotpack.cli import main

raise SystemExit(main())
