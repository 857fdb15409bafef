from codequill_snapshot.cli import main

raise SystemExit(main())
